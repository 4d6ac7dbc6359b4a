"""Marker clustering and the cluster layer manager.

ClusterGroup mirrors Leaflet.markercluster: markers are grouped on a pixel
grid per zoom level, loading is chunked through the host's event queue, and
``zoom_to_show_layer`` zooms (or spiderfies at max zoom) until a marker is
individually visible before running its continuation.

ClusterLayerManager owns one ClusterGroup and the point id -> marker mapping.
The mapping is rebuilt from scratch on every visible-set change.
"""

from __future__ import annotations

import html
import math
from collections.abc import Iterable, Mapping
from typing import Callable

import folium
from folium.plugins import MarkerCluster
from loguru import logger

from ghost_trees.layers.feature import RenderablePoint
from ghost_trees.layers.map_host import LatLng, MapHost, MapLayer

NO_DETAILS_HTML = "<div>(no details)</div>"


def format_record_type(value) -> str | None:
    """``Arborist_Complaint`` -> ``Arborist Complaint``."""
    if value is None or value == "":
        return None
    return str(value).replace("_", " ")


def popup_html(properties: Mapping | None) -> str:
    """Popup body from Address, Record_Type and Date; empty if none present."""
    props = properties or {}
    parts: list[str] = []
    if props.get("Address"):
        parts.append(f"<div>{html.escape(str(props['Address']))}</div>")
    if props.get("Record_Type"):
        record_type = format_record_type(props["Record_Type"])
        parts.append(f"<div><strong>Record Type:</strong> {html.escape(record_type)}</div>")
    if props.get("Date"):
        parts.append(f"<div><strong>Date:</strong> {html.escape(str(props['Date']))}</div>")
    return "".join(parts)


class Marker:
    """One point on the map, owned by at most one ClusterGroup."""

    def __init__(self, point_id: str, lat: float, lng: float, popup_html: str) -> None:
        self.point_id = point_id
        self.lat = lat
        self.lng = lng
        self.popup_html = popup_html
        self._group: ClusterGroup | None = None

    @property
    def latlng(self) -> LatLng:
        return (self.lat, self.lng)

    @property
    def group(self) -> ClusterGroup | None:
        return self._group

    def open_popup(self) -> bool:
        host = self._group.host if self._group is not None else None
        if host is None:
            return False
        host.open_popup(self)
        return True

    def __repr__(self) -> str:
        return f"Marker({self.point_id!r}, {self.lat:.6f}, {self.lng:.6f})"


class ClusterGroup(MapLayer):
    """Grid-clustered marker layer."""

    z_index = 10

    def __init__(
        self,
        layer_id: str = "tree-markers",
        *,
        max_cluster_radius: int = 80,
        chunked_loading: bool = True,
        chunk_size: int = 500,
        show_coverage_on_hover: bool = False,
        popup_max_width: int = 320,
    ) -> None:
        super().__init__(layer_id, name="Tree records")
        self.max_cluster_radius = max_cluster_radius
        self.chunked_loading = chunked_loading
        self.chunk_size = max(1, chunk_size)
        self.show_coverage_on_hover = show_coverage_on_hover
        self.popup_max_width = popup_max_width
        self._host: MapHost | None = None
        self._markers: list[Marker] = []
        # Bumped whenever queued work (chunks, reveal continuations) goes stale
        self._generation = 0
        self._spiderfied: tuple[int, set[Marker]] | None = None

    @property
    def host(self) -> MapHost | None:
        return self._host

    @property
    def markers(self) -> list[Marker]:
        return list(self._markers)

    def __len__(self) -> int:
        return len(self._markers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_add(self, host: MapHost) -> None:
        self._host = host

    def on_remove(self, host: MapHost) -> None:
        self._close_own_popup()
        self._host = None
        self._generation += 1
        self._spiderfied = None

    def _close_own_popup(self) -> None:
        if self._host is None:
            return
        owner = self._host.popup_owner
        if isinstance(owner, Marker) and owner.group is self:
            self._host.close_popup(owner)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def clear_layers(self) -> None:
        """Drop every marker, including chunks that haven't loaded yet."""
        self._close_own_popup()
        for marker in self._markers:
            marker._group = None
        self._markers = []
        self._spiderfied = None
        self._generation += 1

    def add_layer(self, marker: Marker) -> None:
        if marker._group is self:
            return
        marker._group = self
        self._markers.append(marker)

    def add_layers(self, markers: Iterable[Marker]) -> None:
        """Add markers, in chunks on the host queue when chunked loading is on."""
        markers = list(markers)
        if not self.chunked_loading or self._host is None:
            for marker in markers:
                self.add_layer(marker)
            return

        generation = self._generation
        for start in range(0, len(markers), self.chunk_size):
            chunk = markers[start:start + self.chunk_size]
            self._host.call_soon(lambda chunk=chunk: self._add_chunk(chunk, generation))

    def _add_chunk(self, chunk: list[Marker], generation: int) -> None:
        if generation != self._generation or self._host is None:
            return
        for marker in chunk:
            self.add_layer(marker)

    def has_layer(self, marker: Marker) -> bool:
        return marker._group is self

    # ------------------------------------------------------------------
    # Clustering
    # ------------------------------------------------------------------

    def _cell(self, marker: Marker, zoom: int) -> tuple[int, int]:
        x, y = self._host.project(marker.latlng, zoom)
        size = self.max_cluster_radius
        return (math.floor(x / size), math.floor(y / size))

    def clusters(self, zoom: int | None = None) -> list[list[Marker]]:
        """Markers grouped by grid cell at ``zoom`` (default: host zoom).

        Groups of one are individually shown markers.
        """
        if self._host is None:
            return []
        zoom = self._host.zoom if zoom is None else zoom
        cells: dict[tuple[int, int], list[Marker]] = {}
        for marker in self._markers:
            cells.setdefault(self._cell(marker, zoom), []).append(marker)
        return list(cells.values())

    def _siblings(self, marker: Marker, zoom: int) -> list[Marker]:
        cell = self._cell(marker, zoom)
        return [m for m in self._markers if self._cell(m, zoom) == cell]

    def is_shown(self, marker: Marker) -> bool:
        """Whether ``marker`` is drawn individually at the current zoom."""
        if self._host is None or marker._group is not self:
            return False
        zoom = self._host.zoom
        if self._spiderfied is not None:
            spider_zoom, members = self._spiderfied
            if spider_zoom == zoom and marker in members:
                return True
        return len(self._siblings(marker, zoom)) == 1

    def unclustered_zoom(self, marker: Marker, start: int) -> int | None:
        """Lowest zoom >= ``start`` at which ``marker`` is alone in its cell."""
        for zoom in range(start, self._host.max_zoom + 1):
            if len(self._siblings(marker, zoom)) == 1:
                return zoom
        return None

    def spiderfy(self, markers: Iterable[Marker]) -> None:
        self._spiderfied = (self._host.zoom, set(markers))

    def zoom_to_show_layer(self, marker: Marker, callback: Callable[[], None]) -> bool:
        """Make ``marker`` individually visible, then run ``callback``.

        The callback runs after the host reports the move settled. It is
        dropped if the group is cleared or detached in the meantime.

        Returns:
            False if the marker is not (yet) in this group; nothing happens.
        """
        host = self._host
        if host is None or marker._group is not self:
            return False

        generation = self._generation

        def still_current() -> bool:
            return (
                self._generation == generation
                and self._host is host
                and marker._group is self
            )

        if self.is_shown(marker) and host.bounds().contains(marker.latlng):
            callback()
            return True

        target = self.unclustered_zoom(marker, host.zoom)
        if target is not None:
            def settled() -> None:
                if still_current():
                    callback()
            host.set_view(marker.latlng, target, on_settled=settled)
            return True

        def spiderfy_then_show() -> None:
            if not still_current():
                return
            self.spiderfy(self._siblings(marker, host.zoom))
            callback()

        host.set_view(marker.latlng, host.max_zoom, on_settled=spiderfy_then_show)
        return True

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_folium(self, host: MapHost) -> MarkerCluster:
        cluster = MarkerCluster(
            name=self.name,
            chunked_loading=self.chunked_loading,
            show_coverage_on_hover=self.show_coverage_on_hover,
            max_cluster_radius=self.max_cluster_radius,
        )
        open_marker = host.popup_owner
        for marker in self._markers:
            folium.Marker(
                location=[marker.lat, marker.lng],
                popup=folium.Popup(
                    marker.popup_html,
                    max_width=self.popup_max_width,
                    show=marker is open_marker,
                ),
            ).add_to(cluster)
        return cluster


class ClusterLayerManager:
    """Keeps a ClusterGroup in step with the visible point set."""

    def __init__(
        self,
        *,
        max_cluster_radius: int = 80,
        chunk_size: int = 500,
        popup_max_width: int = 320,
    ) -> None:
        self._options = {
            "max_cluster_radius": max_cluster_radius,
            "chunk_size": chunk_size,
            "popup_max_width": popup_max_width,
        }
        self._host: MapHost | None = None
        self._group: ClusterGroup | None = None
        self._markers: dict[str, Marker] = {}

    @property
    def mounted(self) -> bool:
        return self._group is not None

    @property
    def group(self) -> ClusterGroup | None:
        return self._group

    @property
    def markers(self) -> dict[str, Marker]:
        return dict(self._markers)

    def marker_for(self, point_id: str) -> Marker | None:
        return self._markers.get(point_id)

    def mount(self, host: MapHost) -> None:
        if self._group is not None:
            return
        group = ClusterGroup(chunked_loading=True, show_coverage_on_hover=False, **self._options)
        host.add_layer(group)
        self._host = host
        self._group = group

    def unmount(self) -> None:
        if self._group is None:
            return
        self._host.remove_layer(self._group)
        self._group = None
        self._host = None
        self._markers = {}

    def reconcile(self, points: Iterable[RenderablePoint]) -> None:
        """Discard every marker and build one per visible point."""
        group = self._group
        if group is None:
            self._markers = {}
            return

        group.clear_layers()
        created: list[Marker] = []
        next_markers: dict[str, Marker] = {}
        for point in points:
            marker = Marker(
                point.point_id,
                point.lat,
                point.lng,
                popup_html(point.properties) or NO_DETAILS_HTML,
            )
            created.append(marker)
            next_markers[point.point_id] = marker

        group.add_layers(created)
        self._markers = next_markers
        logger.debug(f"Cluster layer rebuilt with {len(created)} markers")

    def focus(self, point_id: str) -> bool:
        """Reveal the marker for ``point_id``, open its popup, pan to it.

        Returns:
            False (and does nothing) when the id has no rendered marker.
        """
        marker = self._markers.get(point_id)
        if marker is None or self._group is None:
            return False

        host = self._host

        def reveal() -> None:
            marker.open_popup()
            host.pan_to(marker.latlng)

        return self._group.zoom_to_show_layer(marker, reveal)
