"""Exception hierarchy for the tree map core."""

from __future__ import annotations


class GhostTreesError(Exception):
    """Base class for all tree map errors."""


class LoadError(GhostTreesError):
    """A document could not be fetched or parsed."""


class MalformedDatasetError(LoadError):
    """A parsed dataset document has no top-level ``features`` list."""


class DatasetNotLoadedError(GhostTreesError):
    """A filter operation was requested before a dataset finished loading."""
