"""Detail panel rows for the focused record, and the filter status line."""

from __future__ import annotations

from ghost_trees.layers.cluster import format_record_type
from ghost_trees.layers.feature import Feature

# (label, property key)
DETAIL_FIELDS = (
    ("Date", "Date"),
    ("Record Type", "Record_Type"),
    ("Address", "Address"),
    ("Permit Name", "Permit_Name"),
    ("Status", "Status"),
    ("Tree Type", "Tree_Type"),
    ("Number of Trees", "Num_of_Trees"),
    ("Cause of Death", "Cause_of_Death"),
    ("Description", "Description"),
)

EMPTY_HINT = "Click a point on the map to see details."


def _display(value) -> str:
    return str(value) if value is not None and value != "" else "null"


def detail_rows(feature: Feature | None) -> list[tuple[str, str]]:
    """Ordered (label, value) pairs; empty when nothing is selected."""
    if feature is None:
        return []
    props = feature.properties
    rows = []
    for label, key in DETAIL_FIELDS:
        value = props.get(key)
        if key == "Record_Type":
            value = format_record_type(value) or value
        rows.append((label, _display(value)))
    return rows


def filter_status(shown: int, total: int) -> str:
    if total == 0:
        return "No records available."
    return f"Showing {shown:,} of {total:,} records"
