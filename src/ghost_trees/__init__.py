"""Ghost Trees — filter and cluster arborist tree-removal records on a map.

The core is synchronous and UI-agnostic: TreeMapSession drives a headless
MapHost, and ghost_trees.layers.render turns it into a folium page.
"""

from ghost_trees.errors import (
    DatasetNotLoadedError,
    GhostTreesError,
    LoadError,
    MalformedDatasetError,
)
from ghost_trees.filters import FilterEngine, FilterState, visible_features
from ghost_trees.session import SessionState, TreeMapSession

__all__ = [
    "DatasetNotLoadedError",
    "FilterEngine",
    "FilterState",
    "GhostTreesError",
    "LoadError",
    "MalformedDatasetError",
    "SessionState",
    "TreeMapSession",
    "visible_features",
]
