#!/usr/bin/env python3
"""
data_utils.py - Tabular dataset loading

Parses the delimited scenario/dataset files into Records keyed by canonical
municipality code. The loader is tolerant of header spelling variants and of
bad cells, but not of missing key columns:

- A required logical column with no matching header is fatal for the load
  (MissingColumnError, no records).
- A row without a usable identifier or secondary key is skipped.
- A value cell that is empty, non-numeric, non-finite or out of range reads
  as None. Zero is a valid measurement and is never used as a default.
"""

import asyncio
import io
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import requests
from loguru import logger

from .errors import (
    FetchError,
    MalformedRowError,
    MalformedTableError,
    MissingColumnError,
    UnparsableNumberError,
)
from .identifiers import try_normalize

IDENTIFIER = "identifier"
SECONDARY_KEY = "secondary_key"


@dataclass(frozen=True)
class Record:
    """One parsed row: canonical identifier, optional secondary key and values."""

    identifier: str
    secondary_key: Optional[str]
    values: Dict[str, Optional[float]]


@dataclass
class ColumnSpec:
    """Logical columns of a dataset and the header spellings accepted for each.

    Candidates are tried in order; the first exact header match wins.
    """

    identifier: List[str] = field(default_factory=lambda: ["cod_mun", "CD_MUN"])
    values: Dict[str, List[str]] = field(default_factory=dict)
    secondary_key: Optional[List[str]] = None


@dataclass
class DatasetSpec:
    """A loadable dataset: where its bytes live and how to read its columns."""

    dataset_id: str
    location: str
    columns: ColumnSpec
    label: str = ""
    description: str = ""

    @property
    def variables(self) -> List[str]:
        return list(self.columns.values)


@dataclass
class LoadResult:
    """Outcome of parse_table(). records is empty whenever error is set."""

    records: List[Record] = field(default_factory=list)
    error: Optional[MissingColumnError] = None
    skipped_rows: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_columns(
    header: Sequence[str], candidates: Dict[str, Sequence[str]]
) -> Dict[str, Optional[int]]:
    """Map each logical column to the index of its first matching header.

    Args:
        header: Header cells, already stripped
        candidates: {logical_name: [spelling, ...]} in priority order

    Returns:
        {logical_name: index or None}
    """
    positions = {name: i for i, name in reversed(list(enumerate(header)))}
    resolved: Dict[str, Optional[int]] = {}
    for logical, spellings in candidates.items():
        resolved[logical] = next(
            (positions[s] for s in spellings if s in positions), None
        )
        if resolved[logical] is not None:
            logger.trace(f"  📍 {logical} -> column {resolved[logical]}")
    return resolved


def _read_cells(text: str, delimiter: str) -> pd.DataFrame:
    """
    Read every line as strings, wide enough that no row is ever rejected.

    Raises:
        MalformedTableError: if the text cannot be tokenized at all
    """
    lines = text.splitlines()
    width = max((line.count(delimiter) + 1 for line in lines), default=0)
    if width == 0:
        return pd.DataFrame()

    try:
        return pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except pd.errors.ParserError as e:
        raise MalformedTableError(str(e)) from e


def _cell_text(value: object) -> str:
    """Stripped cell text; missing cells (NaN, NA, None) read as ''."""
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def _numeric(series: pd.Series) -> pd.Series:
    """Coerce cells to float; anything empty, non-numeric or infinite is NaN."""
    values = pd.to_numeric(series.map(_cell_text).astype(object), errors="coerce")
    return values.replace([np.inf, -np.inf], np.nan).astype(float)


def _cell_or_none(value: float) -> Optional[float]:
    return None if math.isnan(value) else float(value)


def parse_table(text: str, columns: ColumnSpec, delimiter: str = ",") -> LoadResult:
    """
    Parse delimited text into Records.

    Args:
        text: Raw file contents; first line is the header
        columns: Logical column spec with accepted header spellings
        delimiter: Field delimiter

    Returns:
        LoadResult with records, or with a MissingColumnError and no records

    Raises:
        MalformedTableError: if the text cannot be tokenized (e.g. an
            unterminated quote)
    """
    cells = _read_cells(text, delimiter)
    header = [] if cells.empty else [_cell_text(c).lstrip("\ufeff") for c in cells.iloc[0]]

    candidates: Dict[str, Sequence[str]] = {IDENTIFIER: columns.identifier}
    if columns.secondary_key is not None:
        candidates[SECONDARY_KEY] = columns.secondary_key
    candidates.update(columns.values)
    resolved = resolve_columns(header, candidates)

    for required in (IDENTIFIER, SECONDARY_KEY):
        if required in candidates and resolved[required] is None:
            error = MissingColumnError(
                f"{required} ({' | '.join(candidates[required])})", header
            )
            logger.error(f"❌ {error}")
            return LoadResult(error=error)

    body = cells.iloc[1:]
    # Plain lists: a Series.map() result would turn None back into NaN under
    # the string dtype
    identifiers = [try_normalize(v) for v in body[resolved[IDENTIFIER]]]

    if SECONDARY_KEY in resolved:
        secondary: List[Optional[str]] = [_cell_text(v) for v in body[resolved[SECONDARY_KEY]]]
    else:
        secondary = [None] * len(body)

    value_columns: Dict[str, List[Optional[float]]] = {}
    for variable in columns.values:
        position = resolved[variable]
        if position is None:
            logger.warning(f"  ⚠️ No column for variable '{variable}', values will be empty")
            value_columns[variable] = [None] * len(body)
            continue

        series = _numeric(body[position])
        raw = [_cell_text(v) for v in body[position]]
        unparsable = [cell for cell, number in zip(raw, series) if cell and math.isnan(number)]
        if unparsable:
            logger.debug(
                f"  🔢 {variable}: {len(unparsable)} cells read as no data "
                f"({UnparsableNumberError(unparsable[0])})"
            )
        value_columns[variable] = [_cell_or_none(v) for v in series]

    records: List[Record] = []
    skipped = 0
    for i, (identifier, key) in enumerate(zip(identifiers, secondary)):
        if identifier is None or key == "":
            reason = "no usable identifier" if identifier is None else "empty secondary key"
            logger.debug(f"  ⏭️ {MalformedRowError(i + 2, reason)}")
            skipped += 1
            continue

        values = {variable: column[i] for variable, column in value_columns.items()}
        records.append(Record(identifier=identifier, secondary_key=key, values=values))

    if skipped:
        logger.info(f"  🧹 Skipped {skipped} malformed rows")
    logger.debug(f"  ✅ Parsed {len(records):,} records")
    return LoadResult(records=records, skipped_rows=skipped)


def _read_location(location: str, timeout: float) -> str:
    if location.startswith(("http://", "https://")):
        try:
            response = requests.get(location, timeout=timeout)
        except requests.RequestException as e:
            raise FetchError(location, str(e)) from e
        if not response.ok:
            raise FetchError(location, f"HTTP {response.status_code} {response.reason}")
        response.encoding = response.encoding or "utf-8"
        return response.text

    try:
        return Path(location).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise FetchError(location, str(e)) from e


async def fetch_text(location: Union[str, Path], timeout: float = 30.0) -> str:
    """
    Fetch a text file from a local path or an http(s) URL.

    The blocking read runs in a worker thread so the event loop keeps
    serving other selections while bytes are in flight.

    Raises:
        FetchError: on network failure, non-success status, missing file
            or undecodable bytes
    """
    location = str(location)
    logger.debug(f"📥 Fetching {location}")
    return await asyncio.to_thread(_read_location, location, timeout)
