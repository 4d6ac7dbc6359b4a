"""TreeMapSession — the owned session state and the operations the UI calls.

Every public operation recomputes the visible set, rebuilds the marker layer
and drains the map's event queue before returning, so a caller never sees a
half-updated view.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from loguru import logger

from ghost_trees.errors import DatasetNotLoadedError, MalformedDatasetError
from ghost_trees.filters import FilterEngine, FilterState, visible_features
from ghost_trees.layers.boundary import BoundaryOverlay
from ghost_trees.layers.cluster import ClusterLayerManager
from ghost_trees.layers.feature import Feature, RenderablePoint
from ghost_trees.layers.map_host import MapHost
from ghost_trees.layers.projector import project
from ghost_trees.layers.store import FeatureStore, LoadResult

IDLE = "idle"
LOADING = "loading"
LOADED = "loaded"
ERROR = "error"


@dataclass
class SessionState:
    """Process-local state of one map view."""

    status: str = IDLE
    error: str | None = None
    load_result: LoadResult | None = None
    points: list[RenderablePoint] = field(default_factory=list)
    filters: FilterState = field(default_factory=FilterState)
    focused_id: str | None = None
    boundary: dict | None = None
    visible_features: list[Feature] = field(default_factory=list)
    visible_points: list[RenderablePoint] = field(default_factory=list)


class TreeMapSession:
    """Wires the store, filters, cluster layer and boundary to one MapHost."""

    def __init__(
        self,
        host: MapHost,
        *,
        store: FeatureStore | None = None,
        clusters: ClusterLayerManager | None = None,
    ) -> None:
        self.state = SessionState()
        self.host = host
        self.store = store or FeatureStore()
        self.filters = FilterEngine(self.state)
        self.clusters = clusters or ClusterLayerManager()
        self.boundary = BoundaryOverlay(host)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self) -> None:
        self.clusters.mount(self.host)
        self.boundary.render(self.state.boundary)
        self._refresh()
        logger.info("Tree map session mounted")

    def unmount(self) -> None:
        self.clusters.unmount()
        self.boundary.clear()
        self.host.close_popup()
        # Anything still queued belongs to layers that no longer exist
        self.host.process_events()
        logger.info("Tree map session unmounted")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def begin_load(self) -> None:
        self.state.status = LOADING
        self.state.error = None
        self.state.focused_id = None
        self._refresh()

    def apply_dataset(self, document) -> LoadResult | None:
        """Load a parsed dataset document and reset filters.

        A schema error is recorded like a load error; it is not raised.
        """
        try:
            result = self.store.load(document)
        except MalformedDatasetError as e:
            self.fail_load(str(e))
            return None

        state = self.state
        state.load_result = result
        state.points = project(result.features)
        state.status = LOADED
        state.error = None
        self.filters.reset()
        self._refresh()
        return result

    def fail_load(self, message: str) -> None:
        """Record a fatal dataset failure; the map keeps basemap and boundary."""
        logger.error(f"Failed to load dataset: {message}")
        state = self.state
        state.status = ERROR
        state.error = message
        state.load_result = None
        state.points = []
        state.focused_id = None
        self.store.clear()
        self._refresh()

    def apply_boundary(self, document) -> bool:
        state = self.state
        state.boundary = document if isinstance(document, Mapping) else None
        shown = self.boundary.render(state.boundary)
        self.host.process_events()
        return shown

    # ------------------------------------------------------------------
    # UI operations
    # ------------------------------------------------------------------

    def on_filter_change(self, partial: Mapping) -> None:
        """Apply a partial filter update (start_year, end_year, min_trees).

        Raises:
            DatasetNotLoadedError: If no dataset is loaded.
        """
        if self.state.status != LOADED:
            raise DatasetNotLoadedError("Filters are unavailable until the dataset loads")
        self.filters.apply(partial)
        self._refresh()

    def on_focus_request(self, feature_id) -> bool:
        """Focus a visible record: reveal its marker and open its popup.

        Returns:
            False if the id is not in the visible set; nothing changes.
        """
        feature_id = str(feature_id)
        if self._find_visible(feature_id) is None:
            return False
        self.state.focused_id = feature_id
        self.clusters.focus(feature_id)
        self.host.process_events()
        return True

    def on_clear_focus(self) -> None:
        self.state.focused_id = None
        self.host.close_popup()

    def home(self) -> None:
        self.host.reset_view()
        self.host.process_events()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def selected_feature(self) -> Feature | None:
        focused = self.state.focused_id
        if focused is None:
            return None
        return self._find_visible(focused)

    @property
    def total_count(self) -> int:
        result = self.state.load_result
        return result.feature_count if result is not None and self.state.status == LOADED else 0

    @property
    def shown_count(self) -> int:
        return len(self.state.visible_features)

    @property
    def visible_features(self) -> list[Feature]:
        return list(self.state.visible_features)

    @property
    def visible_points(self) -> list[RenderablePoint]:
        return list(self.state.visible_points)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _find_visible(self, feature_id: str) -> Feature | None:
        for feature in self.state.visible_features:
            if feature.feature_id == feature_id:
                return feature
        return None

    def _refresh(self) -> None:
        state = self.state
        if state.status == LOADED and state.load_result is not None:
            state.visible_features = visible_features(state.load_result.features, state.filters)
        else:
            state.visible_features = []

        visible_ids = {f.feature_id for f in state.visible_features}
        visible_indexes = {f.index for f in state.visible_features}
        state.visible_points = [p for p in state.points if p.index in visible_indexes]

        if state.focused_id is not None and state.focused_id not in visible_ids:
            state.focused_id = None

        self.clusters.reconcile(state.visible_points)
        self.host.process_events()
