"""Point projector — features to validated renderable points.

Only Point geometries with a finite [lng, lat] pair survive. Everything else
is dropped silently; malformed geometry is expected in the source data.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from ghost_trees.layers.feature import Feature, RenderablePoint


def _finite(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def project_feature(feature: Feature) -> RenderablePoint | None:
    """Project one feature, or return None if its geometry is unusable."""
    geometry = feature.geometry
    if not geometry or geometry.get("type") != "Point":
        return None

    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, Sequence) or isinstance(coordinates, str):
        return None
    if len(coordinates) < 2:
        return None

    lng, lat = coordinates[0], coordinates[1]
    if not (_finite(lat) and _finite(lng)):
        return None

    return RenderablePoint(
        point_id=feature.feature_id,
        lat=float(lat),
        lng=float(lng),
        year=feature.year,
        properties=feature.properties,
        index=feature.index,
    )


def project(features: Iterable[Feature]) -> list[RenderablePoint]:
    """Project features in input order, skipping invalid ones."""
    points: list[RenderablePoint] = []
    for feature in features:
        point = project_feature(feature)
        if point is not None:
            points.append(point)
    return points
