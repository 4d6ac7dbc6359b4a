"""MapHost — the long-lived map surface.

Owns the view (centre, zoom, viewport size), the basemap tile layer, the
registry of attached layers, the single open popup, and a FIFO of pending
callbacks standing in for the browser event loop (zoom animations settling,
chunked marker loading). Callers drain it with ``process_events()``.

Coordinates passed in and out are (lat, lng) tuples; pixel coordinates use
the Web Mercator projection with 256px tiles.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Callable, Protocol

from loguru import logger

TILE_SIZE = 256
_MAX_LATITUDE = 85.0511287798

LatLng = tuple[float, float]


@dataclass(frozen=True)
class TileLayer:
    """Opaque basemap source, added once when the host is created."""

    url: str
    attribution: str
    max_zoom: int = 19


@dataclass(frozen=True)
class LatLngBounds:
    south: float
    west: float
    north: float
    east: float

    def contains(self, latlng: LatLng) -> bool:
        lat, lng = latlng
        return self.south <= lat <= self.north and self.west <= lng <= self.east


class PopupOwner(Protocol):
    popup_html: str

    @property
    def latlng(self) -> LatLng: ...


class MapLayer:
    """Base class for anything attached to a MapHost.

    Subclasses render themselves with ``to_folium``.
    """

    z_index = 0

    def __init__(self, layer_id: str, name: str = "") -> None:
        self.layer_id = layer_id
        self.name = name or layer_id

    def on_add(self, host: MapHost) -> None:
        pass

    def on_remove(self, host: MapHost) -> None:
        pass

    def to_folium(self, host: MapHost):
        raise NotImplementedError


class MapHost:
    """View state, layer registry, popup and event queue of one map."""

    def __init__(
        self,
        center: LatLng,
        zoom: int,
        *,
        min_zoom: int = 0,
        max_zoom: int = 18,
        size: tuple[int, int] = (1024, 768),
        tile_layer: TileLayer | None = None,
    ) -> None:
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.size = size
        self.tile_layer = tile_layer
        self._home = (tuple(center), self._clamp_zoom(zoom))
        self._center: LatLng = tuple(center)
        self._zoom = self._clamp_zoom(zoom)
        self._layers: dict[str, MapLayer] = {}
        self._popup_owner: PopupOwner | None = None
        self._pending: deque[Callable[[], None]] = deque()

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    @property
    def center(self) -> LatLng:
        return self._center

    @property
    def zoom(self) -> int:
        return self._zoom

    def _clamp_zoom(self, zoom: int) -> int:
        return max(self.min_zoom, min(self.max_zoom, int(zoom)))

    def set_view(
        self,
        center: LatLng,
        zoom: int | None = None,
        on_settled: Callable[[], None] | None = None,
    ) -> None:
        """Move the view. ``on_settled`` runs once the move has completed."""
        self._center = (float(center[0]), float(center[1]))
        if zoom is not None:
            self._zoom = self._clamp_zoom(zoom)
        if on_settled is not None:
            self.call_soon(on_settled)

    def pan_to(self, latlng: LatLng) -> None:
        self.set_view(latlng)

    def reset_view(self) -> None:
        """Return to the home centre and zoom."""
        center, zoom = self._home
        self.set_view(center, zoom)

    def bounds(self) -> LatLngBounds:
        cx, cy = self.project(self._center)
        half_w, half_h = self.size[0] / 2, self.size[1] / 2
        north, west = self.unproject((cx - half_w, cy - half_h))
        south, east = self.unproject((cx + half_w, cy + half_h))
        return LatLngBounds(south=south, west=west, north=north, east=east)

    def project(self, latlng: LatLng, zoom: int | None = None) -> tuple[float, float]:
        """Lat/lng to absolute Web Mercator pixel coordinates."""
        scale = TILE_SIZE * (2 ** (self._zoom if zoom is None else zoom))
        lat = max(-_MAX_LATITUDE, min(_MAX_LATITUDE, latlng[0]))
        x = (latlng[1] + 180.0) / 360.0 * scale
        sin_lat = math.sin(math.radians(lat))
        y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * scale
        return (x, y)

    def unproject(self, point: tuple[float, float], zoom: int | None = None) -> LatLng:
        scale = TILE_SIZE * (2 ** (self._zoom if zoom is None else zoom))
        lng = point[0] / scale * 360.0 - 180.0
        n = math.pi - 2 * math.pi * point[1] / scale
        lat = math.degrees(math.atan(math.sinh(n)))
        return (lat, lng)

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def add_layer(self, layer: MapLayer) -> str:
        """Attach a layer. Returns its layer_id."""
        if self._layers.get(layer.layer_id) is layer:
            return layer.layer_id
        if layer.layer_id in self._layers:
            raise ValueError(f"Layer id already attached: {layer.layer_id}")
        self._layers[layer.layer_id] = layer
        layer.on_add(self)
        logger.debug(f"Map layer added: {layer.layer_id}")
        return layer.layer_id

    def remove_layer(self, layer: MapLayer) -> bool:
        """Detach ``layer``. Only the exact attached object is removed.

        Returns:
            True if the layer was removed, False if it wasn't attached.
        """
        if self._layers.get(layer.layer_id) is not layer:
            return False
        del self._layers[layer.layer_id]
        layer.on_remove(self)
        logger.debug(f"Map layer removed: {layer.layer_id}")
        return True

    def has_layer(self, layer: MapLayer) -> bool:
        return self._layers.get(layer.layer_id) is layer

    def get_layer(self, layer_id: str) -> MapLayer | None:
        return self._layers.get(layer_id)

    def list_layers(self) -> list[MapLayer]:
        """Attached layers in draw order (lowest z_index first)."""
        return sorted(self._layers.values(), key=lambda l: l.z_index)

    # ------------------------------------------------------------------
    # Popup
    # ------------------------------------------------------------------

    @property
    def popup_owner(self) -> PopupOwner | None:
        return self._popup_owner

    def open_popup(self, owner: PopupOwner) -> None:
        """Open ``owner``'s popup; any other open popup closes."""
        self._popup_owner = owner

    def close_popup(self, owner: PopupOwner | None = None) -> None:
        """Close the open popup, or only if it belongs to ``owner``."""
        if owner is None or self._popup_owner is owner:
            self._popup_owner = None

    # ------------------------------------------------------------------
    # Event queue
    # ------------------------------------------------------------------

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._pending.append(callback)

    def process_events(self) -> int:
        """Run queued callbacks, including ones queued while running.

        Returns:
            Number of callbacks run.
        """
        count = 0
        while self._pending:
            callback = self._pending.popleft()
            callback()
            count += 1
        return count

    @property
    def pending_events(self) -> int:
        return len(self._pending)
