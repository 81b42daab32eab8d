#!/usr/bin/env python3
"""
Interactive scenario choropleth with folium.

Renders the municipality polygons with the per-feature styles of a
RenderPlan. Each feature carries its name, display code and formatted value
as properties so the tooltip and the click popup can show them; features
without a value read "No data" and take the no-data style.
"""

import html
from pathlib import Path
from typing import Any, Dict, Optional, Union

import folium
import geopandas as gpd
from loguru import logger

from processing.statistics import VariableStatistics

from .classification import (
    NO_DATA_TEXT,
    VariableDescriptor,
    feature_style,
    format_value,
    legend_entries,
)
from .selection import RenderPlan


def _legend_html(variable: VariableDescriptor, stats: Optional[VariableStatistics]) -> str:
    rows = "".join(
        f'<div><span style="display:inline-block;width:14px;height:14px;'
        f'background:{color};border:1px solid #999;margin-right:6px;"></span>'
        f"{html.escape(label)}</div>"
        for label, color in legend_entries(variable, stats)
    )
    return f"""
    <div style="position: fixed; bottom: 30px; left: 30px; z-index: 9999;
                background-color: white; border: 2px solid #333333; border-radius: 5px;
                box-shadow: 3px 3px 10px rgba(0,0,0,0.3); padding: 10px;
                font-family: Arial, sans-serif; font-size: 12px;">
        <b>{html.escape(variable.display_name)}</b>
        {rows}
    </div>
    """


def _title_html(plan: RenderPlan, variable: VariableDescriptor, scenario_label: str) -> str:
    subtitle = html.escape(variable.display_name)
    if plan.period_label:
        subtitle += f" · {html.escape(plan.period_label)}"
    return f"""
    <h3 align="center" style="font-size:20px; color: #333333; margin-top:10px;">
    <b>{html.escape(scenario_label)}</b><br>
    <span style="font-size:14px;">{subtitle}</span>
    </h3>
    """


def build_scenario_map(
    municipalities: gpd.GeoDataFrame,
    plan: RenderPlan,
    variable: VariableDescriptor,
    stats: Optional[VariableStatistics] = None,
    settings: Optional[Dict[str, Any]] = None,
    scenario_label: str = "",
) -> folium.Map:
    """
    Build a folium map of the plan's styles over the municipality polygons.

    Args:
        municipalities: Canonical municipality polygons (WGS84)
        plan: Render plan for the current selection
        variable: Descriptor of the selected variable
        stats: Statistics of the selected variable, for the legend
        settings: Visualization settings
        scenario_label: Title shown above the map

    Returns:
        folium.Map ready to save
    """
    settings = settings or {}
    decimals = settings.get("value_decimals", 4)
    no_data_style = feature_style(None, variable, stats, settings)

    m = folium.Map(
        location=settings.get("center", [-15.0, -55.0]),
        zoom_start=settings.get("zoom_start", 4),
        tiles=settings.get("tiles", "CartoDB Positron"),
        prefer_canvas=True,
    )

    if municipalities.empty:
        logger.warning("  ⚠️ No municipality polygons to draw")
        return m

    layer = municipalities[["name", "cod_mun", "cod_mun_display", "geometry"]].copy()
    layer["value_text"] = [
        format_value(plan.values.get(cod_mun), decimals) for cod_mun in layer["cod_mun"]
    ]

    folium.GeoJson(
        data=layer.__geo_interface__,
        name=variable.display_name,
        style_function=lambda feature: plan.styles.get(
            feature["properties"]["cod_mun"], no_data_style
        ),
        highlight_function=lambda feature: {"weight": 2, "color": "#333333"},
        tooltip=folium.GeoJsonTooltip(
            fields=["name", "cod_mun_display", "value_text"],
            aliases=["Municipality:", "Code:", f"{variable.display_name}:"],
            localize=True,
            sticky=False,
            labels=True,
        ),
        popup=folium.GeoJsonPopup(
            fields=["name", "cod_mun_display", "value_text"],
            aliases=["", "Code:", f"{variable.display_name}:"],
            labels=True,
        ),
    ).add_to(m)

    minx, miny, maxx, maxy = layer.total_bounds
    m.fit_bounds([[miny, minx], [maxy, maxx]])

    m.get_root().html.add_child(folium.Element(_title_html(plan, variable, scenario_label)))
    m.get_root().html.add_child(folium.Element(_legend_html(variable, stats)))

    with_data = sum(1 for v in plan.values.values() if v is not None)
    logger.debug(
        f"  🗺️ {with_data:,}/{len(layer):,} municipalities with data "
        f"({len(layer) - with_data:,} {NO_DATA_TEXT.lower()})"
    )
    return m


def save_scenario_map(m: folium.Map, output_path: Union[str, Path]) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    m.save(str(output_path))
    logger.success(f"  ✅ Interactive map saved: {output_path}")
    return output_path
