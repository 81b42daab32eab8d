"""
Configuration Loader for the Scenario Maps

This module provides a centralized way to load and access configuration
settings from the config.yaml file: input paths, the dataset catalogue
(scenarios and the historical dataset), variable semantics, time periods and
visualization/loading settings.

Usage:
    from ops import Config

    config = Config()
    polygons = config.get_input_path('municipalities_geojson')
    datasets = config.get_datasets()
    variables = config.get_variables()
"""

import os
import pathlib
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

from analysis.classification import PALETTES, VariableDescriptor, VariableKind
from processing.data_utils import ColumnSpec, DatasetSpec

PACKAGED_CONFIG = Path(__file__).parent / "config.yaml"


class Config:
    """Configuration manager for the scenario maps."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "columns": {
            "identifier": ["cod_mun", "CD_MUN"],
            "secondary_key": ["cluster"],
        },
        "visualization": {
            "stroke_weight": 0.5,
            "stroke_opacity": 1,
            "stroke_color": "#666",
            "fill_opacity": 0.9,
            "no_data_fill_opacity": 0.3,
            "value_decimals": 4,
            "tiles": "CartoDB Positron",
            "center": [-15.0, -55.0],
            "zoom_start": 4,
        },
        "loading": {
            "discard_stale_results": True,
            "fetch_timeout": 30,
            "delimiter": ",",
        },
        "search": {"limit": 10, "min_chars": 2},
    }

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable SCENARIO_MAPS_CONFIG
                        2. config.yaml in current directory
                        3. ops/config.yaml shipped with the package
            project_root_override: Override project root detection
        """
        if config_file is None:
            env_config = os.environ.get("SCENARIO_MAPS_CONFIG")
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif PACKAGED_CONFIG.exists():
                config_file = PACKAGED_CONFIG
                logger.debug("Using packaged ops/config.yaml")
            else:
                raise FileNotFoundError(
                    "No config.yaml found. Check current directory or set SCENARIO_MAPS_CONFIG"
                )

        self.config_path = Path(config_file).resolve()
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        elif os.environ.get("SCENARIO_MAPS_ROOT"):
            self.project_root = Path(os.environ["SCENARIO_MAPS_ROOT"]).resolve()
            logger.debug(f"Using project root from environment: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            self.data = yaml.safe_load(f) or {}

        self.html_dir = self.project_root / (self.data.get("directories") or {}).get("html", "html")

    @staticmethod
    def _dig(tree: Any, keys: List[str]) -> Any:
        for key in keys:
            if not isinstance(tree, dict) or key not in tree:
                return None
            tree = tree[key]
        return tree

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Dot-path lookup: config.yaml first, then DEFAULTS, then default.

        Args:
            key_path: e.g. "loading.discard_stale_results"
            default: Returned when neither source has the key

        Returns:
            Configuration value
        """
        keys = key_path.split(".")
        for tree in (self.data, self.DEFAULTS):
            value = self._dig(tree, keys)
            if value is not None:
                return value
        return default

    def get_input_path(self, filename_key: str) -> pathlib.Path:
        """
        Get full path to an input file, joined with the project root.

        Args:
            filename_key: Key for the filename in input_files

        Returns:
            Full absolute path to the input file
        """
        relative_path_str = self.data.get("input_files", {}).get(filename_key)
        if not relative_path_str:
            raise ValueError(
                f"Input filename key '{filename_key}' not found in config: input_files"
            )
        return self.project_root / relative_path_str

    def resolve_location(self, location: str) -> str:
        """URLs pass through; relative paths are joined with the project root."""
        if location.startswith(("http://", "https://")):
            return location
        path = Path(location)
        return str(path if path.is_absolute() else self.project_root / path)

    def get_html_dir(self) -> pathlib.Path:
        return pathlib.Path(self.html_dir)

    def get_visualization_settings(self) -> Dict[str, Any]:
        """Visualization settings merged over the defaults."""
        return {**self.DEFAULTS["visualization"], **self.data.get("visualization", {})}

    def get_loading_setting(self, setting_key: str) -> Any:
        return self.get(f"loading.{setting_key}")

    def get_search_setting(self, setting_key: str) -> Any:
        return self.get(f"search.{setting_key}")

    def get_column_candidates(self, logical_name: str) -> List[str]:
        """Accepted header spellings for a logical column, in priority order."""
        result = self.get(f"columns.{logical_name}")
        if result is None:
            return [logical_name]
        if isinstance(result, str):
            return [result]
        return [str(name) for name in result]

    # Catalogue -----------------------------------------------------------

    def get_variables(self) -> Dict[str, VariableDescriptor]:
        """Variable descriptors keyed by column name."""
        variables: Dict[str, VariableDescriptor] = {}
        for name, entry in (self.data.get("variables") or {}).items():
            entry = entry or {}
            palette_name = entry.get("palette")
            if palette_name is not None and palette_name not in PALETTES:
                raise ValueError(f"Unknown palette '{palette_name}' for variable '{name}'")
            variables[name] = VariableDescriptor(
                name=name,
                kind=VariableKind(entry.get("kind", VariableKind.CONTINUOUS.value)),
                label=entry.get("label", name),
                description=entry.get("description", ""),
                palette=PALETTES.get(palette_name) if palette_name else None,
            )
        return variables

    def get_periods(self) -> Dict[str, str]:
        """Period id -> display label, in configuration order."""
        return {str(k): str(v) for k, v in (self.data.get("periods") or {}).items()}

    def get_datasets(self) -> Dict[str, DatasetSpec]:
        """Loadable datasets keyed by id (scenario ids and the historical dataset)."""
        datasets: Dict[str, DatasetSpec] = {}
        for dataset_id, entry in (self.data.get("datasets") or {}).items():
            if not entry or "file" not in entry:
                raise ValueError(f"Dataset '{dataset_id}' has no file configured")
            columns = ColumnSpec(
                identifier=self.get_column_candidates("identifier"),
                values={v: self.get_column_candidates(v) for v in entry.get("variables", [])},
                secondary_key=(
                    self.get_column_candidates("secondary_key")
                    if entry.get("secondary_key")
                    else None
                ),
            )
            datasets[dataset_id] = DatasetSpec(
                dataset_id=dataset_id,
                location=self.resolve_location(entry["file"]),
                columns=columns,
                label=entry.get("label", dataset_id),
                description=entry.get("description", ""),
            )
        return datasets

    def get_default_selection(self) -> Dict[str, Optional[str]]:
        defaults = self.data.get("defaults") or {}
        return {
            axis: defaults.get(axis) for axis in ("scenario", "variable", "period", "municipality")
        }

    def print_config_summary(self) -> None:
        """Log the catalogue this configuration describes."""
        logger.debug(f"📋 {self.get('project_name', 'Scenario maps')} ({self.config_path})")
        logger.debug(f"   Project root: {self.project_root}")

        for dataset_id, spec in self.get_datasets().items():
            if spec.location.startswith(("http://", "https://")):
                marker = "🌐"
            else:
                marker = "✅" if Path(spec.location).exists() else "❌"
            logger.debug(f"  {marker} {dataset_id}: {spec.location} ({len(spec.variables)} variables)")

        logger.debug(f"📐 Variables: {list(self.get_variables())}")
        logger.debug(f"🕒 Periods: {list(self.get_periods())}")

    def _find_project_root(self) -> Path:
        """The nearest ancestor of the config file that holds a data/ directory."""
        if self.config_path.parent == PACKAGED_CONFIG.parent.resolve():
            return self.config_path.parent.parent

        for candidate in list(self.config_path.parents)[:5]:
            if (candidate / "data").is_dir():
                return candidate

        logger.warning(
            f"⚠️ No data/ directory above {self.config_path}, using its directory as project root"
        )
        return self.config_path.parent
