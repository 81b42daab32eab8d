"""
Processing package for the Scenario Maps

Ingest side of the map: municipality code normalization, tabular dataset
loading, distribution statistics, the lookup store and municipality polygons.
"""

__version__ = "0.1.0"

from .data_utils import ColumnSpec, DatasetSpec, LoadResult, Record, fetch_text, parse_table
from .errors import (
    EmptyIdentifierError,
    FetchError,
    MalformedRowError,
    MalformedTableError,
    MissingColumnError,
    ScenarioMapError,
    UnparsableNumberError,
)
from .identifiers import display_municipality_code, normalize_municipality_code, try_normalize
from .lookup_store import DatasetSnapshot, LookupStore
from .statistics import VariableStatistics, compute_all_stats, compute_stats

__all__ = [
    "normalize_municipality_code",
    "display_municipality_code",
    "try_normalize",
    "ColumnSpec",
    "DatasetSpec",
    "LoadResult",
    "Record",
    "parse_table",
    "fetch_text",
    "VariableStatistics",
    "compute_stats",
    "compute_all_stats",
    "LookupStore",
    "DatasetSnapshot",
    "ScenarioMapError",
    "FetchError",
    "MissingColumnError",
    "MalformedRowError",
    "MalformedTableError",
    "EmptyIdentifierError",
    "UnparsableNumberError",
]
