"""Map layer system for tree records.

Data flows FeatureStore -> project() -> visible_features() ->
ClusterLayerManager -> MapHost, with BoundaryOverlay drawn beside it.
"""

from ghost_trees.layers.boundary import BoundaryOverlay
from ghost_trees.layers.cluster import ClusterGroup, ClusterLayerManager, Marker
from ghost_trees.layers.feature import Feature, FeatureCollection, RenderablePoint
from ghost_trees.layers.map_host import MapHost, MapLayer, TileLayer
from ghost_trees.layers.projector import project
from ghost_trees.layers.store import FeatureStore, LoadResult

__all__ = [
    "BoundaryOverlay",
    "ClusterGroup",
    "ClusterLayerManager",
    "Feature",
    "FeatureCollection",
    "FeatureStore",
    "LoadResult",
    "MapHost",
    "MapLayer",
    "Marker",
    "RenderablePoint",
    "TileLayer",
    "project",
]
