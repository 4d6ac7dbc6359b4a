"""Filter engine — year range and minimum tree count.

Mutations clamp instead of rejecting: setting one year bound past the other
pulls the other bound along, so ``start_year <= end_year`` always holds when
both are set. Every mutation clears the focused record.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ghost_trees.layers.feature import Feature, parse_int

if TYPE_CHECKING:
    from ghost_trees.session import SessionState

MIN_TREES_FLOOR = 1
MIN_TREES_CEILING = 112

FILTER_KEYS = ("start_year", "end_year", "min_trees")


@dataclass
class FilterState:
    """Current filter parameters. None means "unset"."""

    start_year: int | None = None
    end_year: int | None = None
    min_trees: int | None = None

    def as_dict(self) -> dict:
        return {
            "start_year": self.start_year,
            "end_year": self.end_year,
            "min_trees": self.min_trees,
        }


def _coerce(value) -> int | None:
    if value is None or value == "":
        return None
    return parse_int(value)


class FilterEngine:
    """Owns ``SessionState.filters`` and the mutation protocol."""

    def __init__(self, state: SessionState) -> None:
        self._state = state

    @property
    def filters(self) -> FilterState:
        return self._state.filters

    def set_start_year(self, year) -> None:
        filters = self._state.filters
        value = _coerce(year)
        filters.start_year = value
        self._state.focused_id = None
        if value is not None and filters.end_year is not None and filters.end_year < value:
            filters.end_year = value

    def set_end_year(self, year) -> None:
        filters = self._state.filters
        value = _coerce(year)
        filters.end_year = value
        self._state.focused_id = None
        if value is not None and filters.start_year is not None and value < filters.start_year:
            filters.start_year = value

    def set_min_trees(self, count) -> None:
        value = _coerce(count)
        if value is not None and value < MIN_TREES_FLOOR:
            value = MIN_TREES_FLOOR
        self._state.filters.min_trees = value
        self._state.focused_id = None

    def apply(self, partial: Mapping) -> None:
        """Apply a partial update; only keys present are touched.

        Keys are applied in the order start year, end year, min trees.
        """
        if "start_year" in partial:
            self.set_start_year(partial["start_year"])
        if "end_year" in partial:
            self.set_end_year(partial["end_year"])
        if "min_trees" in partial:
            self.set_min_trees(partial["min_trees"])

    def reset(self) -> None:
        self._state.filters = FilterState()
        self._state.focused_id = None


def passes_year(feature: Feature, state: FilterState) -> bool:
    start, end = state.start_year, state.end_year
    if start is None and end is None:
        return True
    year = feature.year_value
    if year is None:
        return False
    if start is not None and year < start:
        return False
    if end is not None and year > end:
        return False
    return True


def passes_tree_count(feature: Feature, state: FilterState) -> bool:
    if state.min_trees is None:
        return True
    count = feature.tree_count
    return count is not None and count >= state.min_trees


def visible_features(features: Iterable[Feature], state: FilterState) -> list[Feature]:
    """Features passing both the year and tree-count tests, in input order."""
    return [
        f for f in features
        if passes_year(f, state) and passes_tree_count(f, state)
    ]
