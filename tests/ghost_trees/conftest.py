"""Shared fixtures for the tree map core tests."""

from __future__ import annotations

import pytest


def make_feature(
    lng: float | None = -84.39,
    lat: float | None = 33.749,
    feature_id=None,
    geometry_type: str = "Point",
    **properties,
) -> dict:
    """A raw GeoJSON feature dict."""
    feature = {
        "type": "Feature",
        "geometry": {"type": geometry_type, "coordinates": [lng, lat]},
        "properties": properties,
    }
    if feature_id is not None:
        feature["id"] = feature_id
    return feature


@pytest.fixture
def feature_factory():
    return make_feature


@pytest.fixture
def tree_document() -> dict:
    """Five records over three years with assorted tree counts."""
    return {
        "type": "FeatureCollection",
        "name": "Tree_Removals",
        "features": [
            make_feature(-84.39, 33.75, Year="2019", Num_of_Trees="3",
                         Record_Type="Arborist_Complaint", Address="1 PEACHTREE ST",
                         Date="2019-04-01"),
            make_feature(-84.40, 33.76, Year="2020", Num_of_Trees="7",
                         Record_Type="Arborist_Dead_Dying_Hazardous_Tree",
                         Address="2 PEACHTREE ST"),
            make_feature(-84.41, 33.77, Year=2021, Num_of_Trees=12,
                         Record_Type="Arborist_Complaint", Address="2 PEACHTREE ST"),
            make_feature(-84.42, 33.78, Num_of_Trees="1", Record_Type="Arborist_Illegal_Activity"),
            make_feature(-84.43, 33.79, Year="2020", Num_of_Trees="many"),
        ],
    }


@pytest.fixture
def boundary_document() -> dict:
    return {
        "type": "FeatureCollection",
        "features": [{
            "type": "Feature",
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-84.55, 33.65], [-84.29, 33.65], [-84.29, 33.89],
                                 [-84.55, 33.89], [-84.55, 33.65]]],
            },
            "properties": {"NAME": "Atlanta"},
        }],
    }
