"""
Analysis package for the Scenario Maps

Color classification and selection/render planning. The AppState driver and
the folium renderer live in analysis.app_state and analysis.map_scenarios.
"""

from .classification import VariableDescriptor, VariableKind, color_for, feature_style, format_value
from .selection import RenderPlan, SelectionState, apply_selection

__all__ = [
    "VariableDescriptor",
    "VariableKind",
    "color_for",
    "feature_style",
    "format_value",
    "RenderPlan",
    "SelectionState",
    "apply_selection",
]
