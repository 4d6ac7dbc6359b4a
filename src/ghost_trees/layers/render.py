"""Render a MapHost to a folium (Leaflet) map."""

from __future__ import annotations

import folium

from ghost_trees.layers.map_host import MapHost


def render_map(host: MapHost) -> folium.Map:
    """Build a folium Map reflecting the host's current state.

    Layers are added in draw order; the open popup (if any) is shown.
    """
    m = folium.Map(
        location=list(host.center),
        zoom_start=host.zoom,
        min_zoom=host.min_zoom,
        max_zoom=host.max_zoom,
        tiles=None,
        control_scale=True,
    )
    if host.tile_layer is not None:
        folium.TileLayer(
            tiles=host.tile_layer.url,
            attr=host.tile_layer.attribution,
            max_zoom=host.tile_layer.max_zoom,
            name="Basemap",
        ).add_to(m)

    for layer in host.list_layers():
        layer.to_folium(host).add_to(m)

    return m


def render_html(host: MapHost) -> str:
    """Standalone HTML page for the host's map."""
    return render_map(host).get_root().render()
