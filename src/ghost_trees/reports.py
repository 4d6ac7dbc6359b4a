"""One-shot batch reports over a loaded feature collection.

These share the data model with the map but none of its state. The
command-line wrappers live in ``scripts/``.
"""

from __future__ import annotations

import json
import math
import re
import sys
from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from ghost_trees.errors import LoadError
from ghost_trees.layers.feature import Feature
from ghost_trees.layers.store import parse_collection

DEFAULT_DATA_PATH = Path("public") / "data.geojson"

_DECIMAL_LITERAL = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")
_RADIX_LITERAL = re.compile(r"^0([xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$")


def load_features(path: str | Path | None = None) -> list[Feature]:
    """Read and validate a GeoJSON file.

    Raises:
        LoadError: If the file can't be read or parsed, or has no features.
    """
    path = Path(path) if path else Path.cwd() / DEFAULT_DATA_PATH
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise LoadError(f"Failed to read file: {path}\n{e}") from e
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise LoadError(f"Failed to parse JSON from: {path}\n{e}") from e
    try:
        return parse_collection(document).features
    except LoadError as e:
        raise LoadError(
            "Expected a GeoJSON FeatureCollection with a 'features' array."
        ) from e


def address_feature_counts(features: Iterable[Feature]) -> list[tuple[int, int]]:
    """How many addresses have 1 feature, 2 features, ...

    Returns:
        Sorted (features_per_address, address_count) pairs.
    """
    per_address: Counter[str] = Counter()
    for feature in features:
        address = feature.properties.get("Address")
        if address:
            per_address[str(address)] += 1
    groups = Counter(per_address.values())
    return sorted(groups.items())


def record_types(features: Iterable[Feature]) -> list[str]:
    """Distinct Record_Type values in first-seen order."""
    seen: dict[str, None] = {}
    for feature in features:
        record_type = feature.properties.get("Record_Type")
        if record_type:
            seen.setdefault(str(record_type), None)
    return list(seen)


def _tree_count(value) -> float | None:
    """Numeric Num_of_Trees value, or None if it is not a finite number.

    Blank strings count as 0 and 0x/0o/0b literals are parsed; booleans
    count as 0 or 1.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if _RADIX_LITERAL.match(text):
            return float(int(text, 0))
        if not _DECIMAL_LITERAL.match(text):
            return None
        number = float(text)
    else:
        return None
    return number if math.isfinite(number) else None


def tree_count_distribution(features: Iterable[Feature]) -> list[tuple[int | float, int]]:
    """Records per Num_of_Trees value, including zero and negative values.

    Returns:
        Sorted (num_trees, record_count) pairs. Integral values are ints.
    """
    groups: Counter[int | float] = Counter()
    for feature in features:
        count = _tree_count(feature.properties.get("Num_of_Trees"))
        if count is None:
            continue
        groups[int(count) if count.is_integer() else count] += 1
    return sorted(groups.items())


def format_address_counts(rows: list[tuple[int, int]]) -> list[str]:
    return [f"{n} features: {addresses} addresses" for n, addresses in rows]


def format_tree_distribution(rows: list[tuple[int | float, int]]) -> list[str]:
    lines = []
    for num_trees, records in rows:
        tree_label = "tree" if abs(num_trees) == 1 else "trees"
        record_label = "record" if records == 1 else "records"
        lines.append(f"{num_trees} {tree_label}: {records} {record_label}")
    return lines


def run_report(report, path: str | None) -> int:
    """Load ``path`` and print ``report(features)`` line by line.

    Returns the process exit code.
    """
    try:
        features = load_features(path)
    except LoadError as e:
        print(str(e), file=sys.stderr)
        return 1
    for line in report(features):
        print(line)
    return 0
