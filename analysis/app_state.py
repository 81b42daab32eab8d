"""
Application state and the selection driver.

AppState is the one object that holds mutable state: the municipality
polygons, the current dataset snapshot and the current selection. Pure
functions (apply_selection, color_for) receive what they need from it
explicitly.

Dataset loads are the only suspension points. A load builds its snapshot in
local variables and publishes it by rebinding self.snapshot once the parse is
complete, so readers see either the old snapshot or the new one, never a
half-built store. When two loads overlap:

- with loading.discard_stale_results (the default) only the most recently
  requested load may publish; an older one that finishes later is dropped.
- without it, whichever load finishes last wins.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

import geopandas as gpd
from loguru import logger

from ops.config_loader import Config
from processing.data_utils import DatasetSpec, fetch_text, parse_table
from processing.errors import FetchError, MalformedTableError
from processing.lookup_store import DatasetSnapshot
from processing.municipalities import (
    CANONICAL_COLUMNS,
    SearchEntry,
    build_search_index,
    load_municipalities,
    search_municipalities,
)

from .classification import VariableDescriptor
from .selection import RenderPlan, SelectionState, apply_selection, click_feature, needs_reload

Fetcher = Callable[[str, float], Awaitable[str]]
RenderCallback = Callable[[RenderPlan], None]


class AppState:
    """Selection driver: performs loads and hands render plans to the map."""

    def __init__(
        self,
        config: Config,
        municipalities: Optional[gpd.GeoDataFrame] = None,
        on_render: Optional[RenderCallback] = None,
        fetch: Fetcher = fetch_text,
    ):
        self.config = config
        self.datasets: Dict[str, DatasetSpec] = config.get_datasets()
        self.variables: Dict[str, VariableDescriptor] = config.get_variables()
        self.periods: Dict[str, str] = config.get_periods()
        self.settings = config.get_visualization_settings()
        self.on_render = on_render
        self._fetch = fetch

        self.municipalities: gpd.GeoDataFrame = (
            municipalities
            if municipalities is not None
            else gpd.GeoDataFrame(columns=CANONICAL_COLUMNS, geometry="geometry", crs="EPSG:4326")
        )
        self.search_index: List[SearchEntry] = build_search_index(self.municipalities)

        self.snapshot = DatasetSnapshot.empty()
        self.selection = SelectionState()
        self.plan: Optional[RenderPlan] = None
        self._requests_issued = 0

    # Loading -------------------------------------------------------------

    async def load_municipalities(self) -> gpd.GeoDataFrame:
        """Load the polygon file named in config, once."""
        path = self.config.get_input_path("municipalities_geojson")
        try:
            self.municipalities = await asyncio.to_thread(load_municipalities, path)
        except FetchError as e:
            logger.critical(f"❌ {e}")
            logger.info("💡 The map will render without polygons")
            return self.municipalities

        self.search_index = build_search_index(self.municipalities)
        return self.municipalities

    async def load_dataset(self, dataset_id: str) -> DatasetSnapshot:
        """
        Fetch, parse and publish one dataset.

        A FetchError or text that cannot be tokenized keeps the current
        snapshot. A missing key column publishes an empty snapshot for the
        dataset.

        Returns:
            The snapshot current after this load
        """
        self._requests_issued += 1
        token = self._requests_issued

        spec = self.datasets.get(dataset_id)
        if spec is None:
            logger.error(f"❌ Unknown dataset '{dataset_id}'")
            return self._publish(DatasetSnapshot.empty(dataset_id), token)

        logger.info(f"📊 Loading {spec.label or dataset_id} from {spec.location}")
        try:
            text = await self._fetch(spec.location, self.config.get_loading_setting("fetch_timeout"))
        except FetchError as e:
            logger.error(f"❌ {e}")
            logger.info(f"   Keeping snapshot '{self.snapshot.dataset_id}'")
            return self.snapshot

        try:
            result = parse_table(text, spec.columns, self.config.get_loading_setting("delimiter"))
        except MalformedTableError as e:
            logger.error(f"❌ Dataset '{dataset_id}' could not be read: {e}")
            logger.info(f"   Keeping snapshot '{self.snapshot.dataset_id}'")
            return self.snapshot

        if not result.ok:
            logger.error(f"❌ Dataset '{dataset_id}' is unusable: {result.error}")
            candidate = DatasetSnapshot.empty(dataset_id)
        else:
            candidate = DatasetSnapshot.build(dataset_id, result.records, spec.variables)

        return self._publish(candidate, token)

    def _publish(self, candidate: DatasetSnapshot, token: int) -> DatasetSnapshot:
        stale = token != self._requests_issued
        if stale and self.config.get_loading_setting("discard_stale_results"):
            logger.info(
                f"⏭️ Discarding stale load of '{candidate.dataset_id}' "
                f"(request {token}, latest {self._requests_issued})"
            )
            return self.snapshot

        self.snapshot = candidate
        return candidate

    # Selection -----------------------------------------------------------

    def secondary_key(self) -> Optional[str]:
        """The period, when the loaded dataset is keyed by period."""
        spec = self.datasets.get(self.snapshot.dataset_id or "")
        if spec is not None and spec.columns.secondary_key is not None:
            return self.selection.period
        return None

    def render_plan(self, previous: Optional[SelectionState] = None) -> RenderPlan:
        return apply_selection(
            previous,
            self.selection,
            self.snapshot,
            self.municipalities,
            self.variables,
            periods=self.periods,
            settings=self.settings,
            secondary_key=self.secondary_key(),
            descriptions={k: spec.description for k, spec in self.datasets.items()},
        )

    def _emit(self, plan: RenderPlan) -> RenderPlan:
        self.plan = plan
        if self.on_render is not None:
            self.on_render(plan)
        return plan

    async def select(self, **axes: Optional[str]) -> RenderPlan:
        """Change one or more selection axes, reloading when the scenario changed."""
        previous = self.selection
        self.selection = previous.with_changes(**axes)
        logger.debug(f"🎯 Selection: {self.selection}")

        if needs_reload(previous, self.selection, self.snapshot):
            await self.load_dataset(self.selection.scenario)

        return self._emit(self.render_plan(previous))

    def click(self, cod_mun: str) -> RenderPlan:
        """Polygon click: select the municipality, no reload."""
        previous = self.selection
        self.selection = click_feature(previous, cod_mun)
        return self._emit(self.render_plan(previous))

    async def start(self, load_polygons: bool = True) -> RenderPlan:
        """Load polygons, then render the default selection from config."""
        if load_polygons and self.municipalities.empty:
            await self.load_municipalities()
        defaults = {k: v for k, v in self.config.get_default_selection().items() if v is not None}
        return await self.select(**defaults)

    def search(self, query: str) -> List[SearchEntry]:
        return search_municipalities(
            self.search_index,
            query,
            limit=self.config.get_search_setting("limit"),
            min_chars=self.config.get_search_setting("min_chars"),
        )
