#!/usr/bin/env python3
"""Print a batch report for a tree-record GeoJSON file.

Reports:
  record-types     distinct Record_Type values, one per line
  address-counts   how many addresses have 1, 2, 3, ... features
  tree-counts      how many records have each Num_of_Trees value

Run:
    PYTHONPATH=src python3 scripts/print_report.py tree-counts [path/to/data.geojson]

The path defaults to public/data.geojson under the current directory.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ghost_trees.reports import (
    address_feature_counts,
    format_address_counts,
    format_tree_distribution,
    record_types,
    run_report,
    tree_count_distribution,
)

REPORTS = {
    "record-types": record_types,
    "address-counts": lambda features: format_address_counts(address_feature_counts(features)),
    "tree-counts": lambda features: format_tree_distribution(tree_count_distribution(features)),
}


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Print aggregate statistics for a tree-record GeoJSON file",
    )
    parser.add_argument("report", choices=sorted(REPORTS), help="Report to print")
    parser.add_argument("path", nargs="?", default=None, help="GeoJSON file (default: public/data.geojson)")
    args = parser.parse_args()
    return run_report(REPORTS[args.report], args.path)


if __name__ == "__main__":
    sys.exit(main())
