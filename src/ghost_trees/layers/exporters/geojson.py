"""Export features to GeoJSON dicts (RFC 7946).

Coordinates are written as [lng, lat].
"""

from __future__ import annotations

from collections.abc import Iterable

from ghost_trees.layers.feature import Feature


def export_features(features: Iterable[Feature], name: str | None = None) -> dict:
    """Export features to a GeoJSON FeatureCollection dict.

    Features keep their original geometry, including malformed ones.
    """
    collection = {
        "type": "FeatureCollection",
        "features": [_feature_to_geojson(f) for f in features],
    }
    if name:
        collection["name"] = name
    return collection


def _feature_to_geojson(feature: Feature) -> dict:
    return {
        "type": "Feature",
        "id": feature.feature_id,
        "geometry": feature.geometry,
        "properties": dict(feature.properties),
    }
