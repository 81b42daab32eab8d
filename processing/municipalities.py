#!/usr/bin/env python3
"""
municipalities.py - Municipality polygon ingest and name search

The polygon dataset names its code property differently depending on where
it was exported from. This module probes the known spellings once, at
ingest, and produces a GeoDataFrame with canonical columns:

    name             - municipality name (NM_MUN)
    cod_mun          - canonical 6-digit join key
    cod_mun_display  - 7-digit code as shown to users
    geometry         - passed through untouched

Nothing downstream looks at the raw property names again.
"""

import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Union

import geopandas as gpd
import pandas as pd
from loguru import logger

from .errors import EmptyIdentifierError, FetchError
from .identifiers import display_municipality_code, normalize_municipality_code

IDENTIFIER_PROPERTIES = ("CD_MUN_STR", "CD_MUN", "cod_mun")
NAME_PROPERTY = "NM_MUN"
UNKNOWN_NAME = "Unknown"
CANONICAL_COLUMNS = ["name", "cod_mun", "cod_mun_display", "geometry"]


def _first_present(properties: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = properties.get(key)
        if value is None or (isinstance(value, float) and pd.isna(value)):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def canonicalize_municipalities(
    gdf: gpd.GeoDataFrame,
    identifier_properties: Sequence[str] = IDENTIFIER_PROPERTIES,
    name_property: str = NAME_PROPERTY,
) -> gpd.GeoDataFrame:
    """
    Reduce a raw polygon GeoDataFrame to the canonical municipality columns.

    Args:
        gdf: Polygons with raw properties as columns
        identifier_properties: Code property spellings in priority order
        name_property: Name property

    Returns:
        GeoDataFrame with name, cod_mun, cod_mun_display and geometry;
        features without a usable code are dropped
    """
    rows = []
    dropped = 0
    for properties, geometry in zip(
        gdf.drop(columns="geometry").to_dict("records"), gdf.geometry
    ):
        raw = _first_present(properties, identifier_properties)
        try:
            cod_mun = normalize_municipality_code(raw)
            cod_mun_display = display_municipality_code(raw)
        except EmptyIdentifierError:
            dropped += 1
            continue

        name = properties.get(name_property)
        if name is None or (isinstance(name, float) and pd.isna(name)):
            name = UNKNOWN_NAME
        rows.append(
            {
                "name": str(name),
                "cod_mun": cod_mun,
                "cod_mun_display": cod_mun_display,
                "geometry": geometry,
            }
        )

    if dropped:
        logger.warning(f"  ⚠️ Dropped {dropped} features without a municipality code")

    result = gpd.GeoDataFrame(rows, columns=CANONICAL_COLUMNS, geometry="geometry", crs=gdf.crs)
    logger.debug(f"  ✅ Canonicalized {len(result):,} municipalities")
    return result


def municipalities_from_features(
    features: Iterable[Dict[str, Any]], crs: str = "EPSG:4326"
) -> gpd.GeoDataFrame:
    """Canonical municipalities from in-memory GeoJSON features."""
    features = list(features)
    if not features:
        return gpd.GeoDataFrame(columns=CANONICAL_COLUMNS, geometry="geometry", crs=crs)
    return canonicalize_municipalities(gpd.GeoDataFrame.from_features(features, crs=crs))


def load_municipalities(path: Union[str, Path]) -> gpd.GeoDataFrame:
    """
    Load the municipality polygon file and canonicalize it.

    Raises:
        FetchError: if the file is missing or unreadable
    """
    path = Path(path)
    logger.info(f"🗺️ Loading municipality polygons from {path}")

    if not path.exists():
        raise FetchError(str(path), "file not found")

    try:
        gdf = gpd.read_file(path)
    except Exception as e:
        raise FetchError(str(path), str(e)) from e

    logger.success(f"  ✅ Loaded {len(gdf):,} features")

    if gdf.crs is None:
        logger.warning("  ⚠️ No CRS found, assuming WGS84")
        gdf = gdf.set_crs("EPSG:4326")
    elif gdf.crs.to_epsg() != 4326:
        logger.info(f"  🔄 Converting from {gdf.crs} to WGS84")
        gdf = gdf.to_crs("EPSG:4326")

    return canonicalize_municipalities(gdf)


# ============================================================================
# Name search
# ============================================================================


@dataclass(frozen=True)
class SearchEntry:
    name: str
    cod_mun: str
    cod_mun_display: str
    folded_name: str

    @property
    def label(self) -> str:
        return f"{self.name} ({self.cod_mun_display})"


def fold_name(name: str) -> str:
    """Lowercase and strip accents so 'São Paulo' matches 'sao paulo'."""
    value = unicodedata.normalize("NFD", name)
    value = "".join(ch for ch in value if unicodedata.category(ch) != "Mn")
    return " ".join(value.lower().split())


def build_search_index(municipalities: gpd.GeoDataFrame) -> List[SearchEntry]:
    return [
        SearchEntry(
            name=row.name,
            cod_mun=row.cod_mun,
            cod_mun_display=row.cod_mun_display,
            folded_name=fold_name(row.name),
        )
        for row in municipalities[["name", "cod_mun", "cod_mun_display"]].itertuples(index=False)
    ]


def search_municipalities(
    index: Sequence[SearchEntry], query: str, limit: int = 10, min_chars: int = 2
) -> List[SearchEntry]:
    """
    Case- and accent-insensitive substring search on municipality names.

    Queries shorter than min_chars return nothing; at most limit entries
    are returned, in index order.
    """
    folded = fold_name(query or "")
    if not folded or len(folded) < min_chars:
        return []

    matches = []
    for entry in index:
        if folded in entry.folded_name:
            matches.append(entry)
            if len(matches) >= limit:
                break
    return matches
