"""Feature store — validate a parsed GeoJSON FeatureCollection and derive
the filter domains (years, per-year counts) and diagnostics (record types,
sample property keys).

The input is an already-parsed document; fetching belongs to
``ghost_trees.loader``.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field

from loguru import logger

from ghost_trees.errors import MalformedDatasetError
from ghost_trees.layers.feature import Feature, FeatureCollection

RECORD_TYPE_TOP_N = 12


@dataclass
class LoadResult:
    """Everything derived from one successful dataset load."""

    collection: FeatureCollection
    years: list[str] = field(default_factory=list)
    year_counts: dict[str, int] = field(default_factory=dict)
    record_type_counts: list[tuple[str, int]] = field(default_factory=list)
    sample_property_keys: list[str] = field(default_factory=list)

    @property
    def features(self) -> list[Feature]:
        return self.collection.features

    @property
    def feature_count(self) -> int:
        return len(self.collection.features)

    @property
    def dataset_name(self) -> str | None:
        return self.collection.name


def parse_collection(document) -> FeatureCollection:
    """Turn a parsed document into a FeatureCollection.

    Raises:
        MalformedDatasetError: If the document has no ``features`` list.
    """
    if not isinstance(document, Mapping):
        raise MalformedDatasetError("GeoJSON document is not an object")
    raw_features = document.get("features")
    if not isinstance(raw_features, list):
        raise MalformedDatasetError("GeoJSON is missing a top-level features[] array")

    features = [_parse_feature(raw, idx) for idx, raw in enumerate(raw_features)]

    name = document.get("name")
    return FeatureCollection(
        features=features,
        name=str(name) if name is not None else None,
    )


def _parse_feature(raw, idx: int) -> Feature:
    """Parse a single GeoJSON Feature; malformed parts degrade to empty."""
    if not isinstance(raw, Mapping):
        return Feature(feature_id=str(idx), geometry=None, properties={}, index=idx)

    geometry = raw.get("geometry")
    if not isinstance(geometry, Mapping):
        geometry = None

    properties = raw.get("properties") or {}
    if not isinstance(properties, Mapping):
        properties = {}

    feature_id = raw.get("id")
    if feature_id is None:
        feature_id = idx

    return Feature(
        feature_id=str(feature_id),
        geometry=dict(geometry) if geometry is not None else None,
        properties=dict(properties),
        index=idx,
    )


class FeatureStore:
    """Holds the loaded collection for the session.

    The collection is replaced wholesale on every load, never mutated.
    """

    def __init__(self, top_n: int = RECORD_TYPE_TOP_N) -> None:
        self._top_n = top_n
        self._result: LoadResult | None = None

    @property
    def result(self) -> LoadResult | None:
        return self._result

    def load(self, document) -> LoadResult:
        """Validate ``document`` and derive its indices.

        Args:
            document: A parsed feature-collection-shaped value.

        Returns:
            The LoadResult, also kept as the store's current result.

        Raises:
            MalformedDatasetError: If ``features`` is missing. The previous
                result is left untouched.
        """
        collection = parse_collection(document)
        features = collection.features

        year_counts: Counter[str] = Counter()
        record_types: Counter[str] = Counter()
        seen_ids: set[str] = set()
        duplicates = 0
        for feature in features:
            year = feature.year
            if year is not None:
                year_counts[year] += 1
            record_type = feature.properties.get("Record_Type")
            if record_type:
                record_types[str(record_type)] += 1
            if feature.feature_id in seen_ids:
                duplicates += 1
            seen_ids.add(feature.feature_id)

        if duplicates:
            logger.warning(f"Dataset has {duplicates} duplicate feature ids")

        # Counter.most_common keeps first-seen order among equal counts
        record_type_counts = record_types.most_common(self._top_n)

        first = features[0] if features else None
        sample_keys = list(first.properties.keys()) if first is not None else []

        result = LoadResult(
            collection=collection,
            years=sorted(year_counts),
            year_counts=dict(sorted(year_counts.items())),
            record_type_counts=record_type_counts,
            sample_property_keys=sample_keys,
        )
        self._result = result
        logger.info(
            f"Dataset loaded: {result.feature_count} features, "
            f"{len(result.years)} distinct years"
        )
        return result

    def clear(self) -> None:
        self._result = None
