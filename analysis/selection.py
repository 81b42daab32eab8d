"""
Selection state and render planning.

The selection is four independent choice axes: scenario (dataset), variable,
period and municipality. Every combination is valid; some simply have no
data. apply_selection() turns a selection plus the current dataset snapshot
into a RenderPlan without touching I/O or the map, so the only impure part of
a selection change is the dataset reload performed by the driver.
"""

import html
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import geopandas as gpd

from processing.lookup_store import DatasetSnapshot

from .classification import VariableDescriptor, feature_style, format_value


@dataclass(frozen=True)
class SelectionState:
    scenario: Optional[str] = None
    variable: Optional[str] = None
    period: Optional[str] = None
    municipality: Optional[str] = None

    def with_changes(self, **axes: Optional[str]) -> "SelectionState":
        unknown = set(axes) - {"scenario", "variable", "period", "municipality"}
        if unknown:
            raise TypeError(f"Unknown selection axes: {sorted(unknown)}")
        return replace(self, **axes)


def click_feature(state: SelectionState, cod_mun: str) -> SelectionState:
    """A polygon click selects that municipality and keeps the other axes."""
    return state.with_changes(municipality=cod_mun)


@dataclass(frozen=True)
class PanelInfo:
    """What the side panel and the click popup show for one municipality."""

    name: str
    code: str
    variable_label: str
    value: Optional[float]
    value_text: str
    period_label: Optional[str] = None

    def popup_html(self) -> str:
        lines = [
            f"<strong>{html.escape(self.name)}</strong>",
            f"Code: {html.escape(self.code)}",
            f"{html.escape(self.variable_label)}: {self.value_text}",
        ]
        if self.period_label:
            lines.append(f"Period: {html.escape(self.period_label)}")
        return "<br/>".join(lines)


@dataclass
class RenderPlan:
    """Everything the render surface needs after a selection change."""

    selection: SelectionState
    reload_dataset: bool
    dataset_id: Optional[str]
    values: Dict[str, Optional[float]] = field(default_factory=dict)
    styles: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    panel: Optional[PanelInfo] = None
    variable_description: str = ""
    scenario_description: str = ""
    period_label: Optional[str] = None

    def style_for(self, cod_mun: str) -> Optional[Dict[str, Any]]:
        return self.styles.get(cod_mun)


def needs_reload(
    previous: Optional[SelectionState], new: SelectionState, snapshot: Optional[DatasetSnapshot]
) -> bool:
    """A dataset reload is due when the scenario axis changed or nothing is loaded for it."""
    if new.scenario is None:
        return False
    if previous is None or previous.scenario != new.scenario:
        return True
    return snapshot is None or snapshot.dataset_id != new.scenario


def apply_selection(
    previous: Optional[SelectionState],
    new: SelectionState,
    snapshot: DatasetSnapshot,
    municipalities: gpd.GeoDataFrame,
    variables: Mapping[str, VariableDescriptor],
    periods: Optional[Mapping[str, str]] = None,
    settings: Optional[Dict[str, Any]] = None,
    secondary_key: Optional[str] = None,
    descriptions: Optional[Mapping[str, str]] = None,
) -> RenderPlan:
    """
    Derive per-polygon values, styles and the panel for a selection.

    Args:
        previous: Selection before the change (None on first render)
        new: Selection after the change
        snapshot: Dataset snapshot to read values from
        municipalities: Canonical municipality polygons
        variables: Known variables by name
        periods: Period id -> human label
        settings: Visualization settings (stroke, opacity, decimals)
        secondary_key: Key to look values up with; None for datasets
            without a secondary axis
        descriptions: Scenario id -> description text

    Returns:
        RenderPlan for the new selection
    """
    settings = settings or {}
    periods = periods or {}
    variable = variables.get(new.variable or "") or VariableDescriptor(name=new.variable or "")
    stats = snapshot.stats.get(variable.name)
    period_label = periods.get(new.period) if new.period else None

    values: Dict[str, Optional[float]] = {}
    styles: Dict[str, Dict[str, Any]] = {}
    for cod_mun in municipalities["cod_mun"]:
        value = snapshot.get(cod_mun, variable.name, secondary_key)
        values[cod_mun] = value
        styles[cod_mun] = feature_style(value, variable, stats, settings)

    panel = None
    if new.municipality is not None:
        match = municipalities[municipalities["cod_mun"] == new.municipality]
        value = snapshot.get(new.municipality, variable.name, secondary_key)
        panel = PanelInfo(
            name=match["name"].iloc[0] if len(match) else new.municipality,
            code=match["cod_mun_display"].iloc[0] if len(match) else new.municipality,
            variable_label=variable.display_name,
            value=value,
            value_text=format_value(value, settings.get("value_decimals", 4)),
            period_label=period_label,
        )

    scenario_description = (descriptions or {}).get(new.scenario or "", "")

    return RenderPlan(
        selection=new,
        reload_dataset=needs_reload(previous, new, snapshot),
        dataset_id=snapshot.dataset_id,
        values=values,
        styles=styles,
        panel=panel,
        variable_description=variable.description,
        scenario_description=scenario_description,
        period_label=period_label,
    )
