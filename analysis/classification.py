"""
Choropleth Color Classification

Maps a scalar value to a display color according to the semantics of the
variable it measures. Policies are checked in a fixed order:

1. no data (None or NaN)       -> NO_DATA_COLOR
2. binary variables            -> occurrence / no occurrence
3. bounded fractions [0, 1]
   with a dedicated palette    -> fixed absolute thresholds
4. z-scores                    -> divergent palette centred on 0
5. anything else               -> quantile bands of the variable's own
                                  distribution, or a fixed fallback palette
                                  when no statistics are available

Band boundaries and comparison operators are part of the rendered output and
must not drift; the actual hex values are presentation details.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from processing.statistics import VariableStatistics

NO_DATA_COLOR = "#f8f8f8"
NO_DATA_TEXT = "No data"


class VariableKind(str, Enum):
    BINARY = "binary"
    BOUNDED_FRACTION = "bounded_fraction"
    Z_SCORE = "z_score"
    CONTINUOUS = "continuous"


@dataclass(frozen=True)
class ThresholdBand:
    """Values at or above lower (strictly above when not inclusive) get color."""

    lower: float
    color: str
    inclusive: bool = True

    def contains(self, value: float) -> bool:
        return value >= self.lower if self.inclusive else value > self.lower

    @property
    def label(self) -> str:
        return f"{'≥' if self.inclusive else '>'} {self.lower:g}"


@dataclass(frozen=True)
class ThresholdPalette:
    """Absolute-threshold palette. Bands are checked highest threshold first."""

    name: str
    bands: Tuple[ThresholdBand, ...]
    floor_color: str

    def color_for(self, value: float) -> str:
        for band in self.bands:
            if band.contains(value):
                return band.color
        return self.floor_color

    def legend(self) -> List[Tuple[str, str]]:
        entries = [(band.label, band.color) for band in self.bands]
        lowest = self.bands[-1]
        entries.append((f"{'<' if lowest.inclusive else '≤'} {lowest.lower:g}", self.floor_color))
        return entries


def _palette(name: str, floor_color: str, *bands: Tuple[float, str, bool]) -> ThresholdPalette:
    return ThresholdPalette(
        name=name,
        bands=tuple(ThresholdBand(lower, color, inclusive) for lower, color, inclusive in bands),
        floor_color=floor_color,
    )


BINARY_ON_COLOR = "#e31a1c"
BINARY_OFF_COLOR = "#f0f0f0"

VACCINATION_PALETTE = _palette(
    "vaccination",
    "#f8f8f8",
    (0.95, "#08306b", True),
    (0.80, "#2171b5", True),
    (0.60, "#6baed6", True),
    (0.40, "#bdd7e7", True),
    (0.0, "#eff3ff", False),
)

RISK_PALETTE = _palette(
    "risk",
    "#FFEDA0",
    (0.25, "#800026", True),
    (0.15, "#BD0026", True),
    (0.10, "#E31A1C", True),
    (0.05, "#FC4E2A", True),
    (0.02, "#FD8D3C", True),
    (0.0, "#FEB24C", False),
)

Z_SCORE_PALETTE = _palette(
    "z_score",
    "#2166ac",
    (2.0, "#b2182b", True),
    (1.0, "#ef8a62", True),
    (0.0, "#fddbc7", True),
    (-1.0, "#d1e5f0", True),
    (-2.0, "#67a9cf", True),
)

# Used for continuous variables when no statistics exist for them
FALLBACK_PALETTE = _palette(
    "fallback",
    "#ffeda0",
    (0.8, "#800026", False),
    (0.6, "#bd0026", False),
    (0.4, "#e31a1c", False),
    (0.2, "#fc4e2a", False),
    (0.0, "#fd8d3c", False),
)

# Colors for value <= p25, <= p50, <= p75, <= p95, above p95
QUANTILE_COLORS = ("#fff5eb", "#fee6ce", "#fdae6b", "#e6550d", "#a63603")

PALETTES: Dict[str, ThresholdPalette] = {
    p.name: p for p in (VACCINATION_PALETTE, RISK_PALETTE, Z_SCORE_PALETTE, FALLBACK_PALETTE)
}


@dataclass(frozen=True)
class VariableDescriptor:
    """A named measurement and the semantics that select its color policy."""

    name: str
    kind: VariableKind = VariableKind.CONTINUOUS
    label: str = ""
    description: str = ""
    palette: Optional[ThresholdPalette] = field(default=None, compare=False)

    @property
    def display_name(self) -> str:
        return self.label or self.name


def is_no_data(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def quantile_color(value: float, stats: VariableStatistics) -> str:
    """Band a value by its variable's percentiles after clipping to [p05, p95]."""
    clipped = min(max(value, stats.p05), stats.p95)
    for cut, color in zip((stats.p25, stats.p50, stats.p75, stats.p95), QUANTILE_COLORS):
        if clipped <= cut:
            return color
    return QUANTILE_COLORS[-1]


def color_for(
    value: Optional[float],
    variable: VariableDescriptor,
    stats: Optional[VariableStatistics] = None,
) -> str:
    """
    Color for one value under the variable's classification policy.

    Args:
        value: Observed value, None when there is no data
        variable: Descriptor carrying the variable's kind and palette
        stats: Statistics of the variable in the current dataset, if any

    Returns:
        Hex color string
    """
    if is_no_data(value):
        return NO_DATA_COLOR

    if variable.kind is VariableKind.BINARY:
        return BINARY_ON_COLOR if value == 1 else BINARY_OFF_COLOR

    if variable.kind is VariableKind.BOUNDED_FRACTION and variable.palette is not None:
        return variable.palette.color_for(value)

    if variable.kind is VariableKind.Z_SCORE:
        return (variable.palette or Z_SCORE_PALETTE).color_for(value)

    if stats is None:
        return FALLBACK_PALETTE.color_for(value)
    return quantile_color(value, stats)


def legend_entries(
    variable: VariableDescriptor, stats: Optional[VariableStatistics] = None
) -> List[Tuple[str, str]]:
    """(label, color) pairs describing the bands of the variable's active policy."""
    if variable.kind is VariableKind.BINARY:
        entries = [("Occurrence (1)", BINARY_ON_COLOR), ("No occurrence", BINARY_OFF_COLOR)]
    elif variable.kind is VariableKind.BOUNDED_FRACTION and variable.palette is not None:
        entries = variable.palette.legend()
    elif variable.kind is VariableKind.Z_SCORE:
        entries = (variable.palette or Z_SCORE_PALETTE).legend()
    elif stats is None:
        entries = FALLBACK_PALETTE.legend()
    else:
        cuts = [stats.p05, stats.p25, stats.p50, stats.p75, stats.p95]
        entries = [(f"≤ {stats.p25:.3g}", QUANTILE_COLORS[0])]
        entries += [
            (f"{low:.3g} – {high:.3g}", color)
            for low, high, color in zip(cuts[1:-1], cuts[2:], QUANTILE_COLORS[1:4])
        ]
        entries.append((f"> {stats.p95:.3g}", QUANTILE_COLORS[4]))
    return entries + [(NO_DATA_TEXT, NO_DATA_COLOR)]


def feature_style(
    value: Optional[float],
    variable: VariableDescriptor,
    stats: Optional[VariableStatistics] = None,
    settings: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Leaflet/folium style dict for one polygon."""
    settings = settings or {}
    no_data = is_no_data(value)
    return {
        "fillColor": color_for(value, variable, stats),
        "weight": settings.get("stroke_weight", 0.5),
        "opacity": settings.get("stroke_opacity", 1),
        "color": settings.get("stroke_color", "#666"),
        "fillOpacity": settings.get(
            "no_data_fill_opacity" if no_data else "fill_opacity", 0.3 if no_data else 0.9
        ),
    }


def format_value(value: Optional[float], decimals: int = 4) -> str:
    """Fixed-point text for panels and popups, or the literal 'No data'."""
    if is_no_data(value):
        return NO_DATA_TEXT
    return f"{value:.{decimals}f}"
