"""Boundary overlay — the static city-limits polygon.

Decorative only: a missing or malformed document renders nothing.
"""

from __future__ import annotations

from collections.abc import Mapping

import folium
from loguru import logger

from ghost_trees.layers.map_host import MapHost, MapLayer

BOUNDARY_STYLE = {
    "color": "#2563eb",
    "weight": 3,
    "opacity": 0.8,
    "fillColor": "#3b82f6",
    "fillOpacity": 0.1,
}


class GeoJsonLayer(MapLayer):
    """A static GeoJSON document drawn with one fixed style."""

    z_index = 0

    def __init__(self, layer_id: str, document: dict, style: dict, name: str = "") -> None:
        super().__init__(layer_id, name)
        self.document = document
        self.style = dict(style)

    def to_folium(self, host: MapHost) -> folium.GeoJson:
        style = self.style
        return folium.GeoJson(
            data=self.document,
            name=self.name,
            style_function=lambda _feature: style,
        )


def is_boundary_document(document) -> bool:
    return isinstance(document, Mapping) and isinstance(document.get("features"), list)


class BoundaryOverlay:
    """Adds and removes exactly its own layer on the host."""

    def __init__(self, host: MapHost, layer_id: str = "city-limits") -> None:
        self._host = host
        self._layer_id = layer_id
        self._layer: GeoJsonLayer | None = None

    @property
    def layer(self) -> GeoJsonLayer | None:
        return self._layer

    def render(self, document) -> bool:
        """Replace the overlay with ``document``.

        Returns:
            True if a polygon layer is now shown.
        """
        self.clear()
        if document is None:
            return False
        if not is_boundary_document(document):
            logger.warning("Boundary document has no features[] array; overlay skipped")
            return False

        self._layer = GeoJsonLayer(
            self._layer_id, dict(document), BOUNDARY_STYLE, name="City limits"
        )
        self._host.add_layer(self._layer)
        return True

    def clear(self) -> None:
        if self._layer is not None:
            self._host.remove_layer(self._layer)
            self._layer = None
