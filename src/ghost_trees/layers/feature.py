"""Feature, FeatureCollection and RenderablePoint dataclasses.

All raw coordinates follow GeoJSON convention: [lng, lat] or [lng, lat, alt].
Property bags are open string-keyed mappings; field presence varies per record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

PropertyValue = str | int | float | None

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value) -> int | None:
    """Parse the leading integer of a number or numeric string.

    ``"7"`` -> 7, ``"7.9"`` -> 7, ``7.9`` -> 7, ``"2019-05"`` -> 2019.
    Anything without a leading integer (including booleans) yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    match = _LEADING_INT.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


def normalize_year(value) -> str | None:
    """String-normalise a ``Year`` property; empty, zero and missing are None."""
    if value is None or value == "" or value == 0 or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class Feature:
    """A single input record.

    Attributes:
        feature_id: Explicit ``id`` as a string, or the positional index.
        geometry: Raw GeoJSON geometry mapping (may be missing or malformed).
        properties: Arbitrary key-value metadata.
        index: Position of the feature in the loaded collection.
    """

    feature_id: str
    geometry: dict | None
    properties: dict[str, PropertyValue]
    index: int = 0

    @property
    def year(self) -> str | None:
        return normalize_year(self.properties.get("Year"))

    @property
    def year_value(self) -> int | None:
        year = self.year
        return parse_int(year) if year is not None else None

    @property
    def tree_count(self) -> int | None:
        return parse_int(self.properties.get("Num_of_Trees"))


@dataclass
class FeatureCollection:
    """An ordered set of features plus the optional dataset name."""

    features: list[Feature] = field(default_factory=list)
    name: str | None = None

    def __len__(self) -> int:
        return len(self.features)


@dataclass(frozen=True)
class RenderablePoint:
    """A feature projected into map-displayable form.

    ``properties`` references the source feature's bag; it is not copied.
    """

    point_id: str
    lat: float
    lng: float
    year: str | None
    properties: dict[str, PropertyValue] = field(compare=False, hash=False)
    index: int = 0
