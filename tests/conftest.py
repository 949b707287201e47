"""Shared fixtures for bubbleflow_analysis tests."""

import math
from pathlib import Path

import pytest

from bubbleflow_analysis.layout import LayoutSettings
from bubbleflow_analysis.models import Entity, Point
from bubbleflow_analysis.views import load_view_configurations

SAMPLE_PAYLOAD = Path(__file__).resolve().parent.parent / "data" / "sample_payload.json"


def flow(from_id, to_id=None, in_abs=0.0, out_abs=0.0, metric="churn", **extra):
    entry = {"from": from_id, metric: {"in": {"abs": in_abs}, "out": {"abs": out_abs}}}
    if to_id is not None:
        entry["to"] = to_id
    entry.update(extra)
    return entry


def make_entity(entity_id, x, y, ring=10.0, label=None, is_centre=False):
    return Entity(
        id=entity_id,
        label=label or f"E{entity_id}",
        absolute_value=1.0,
        percentile_rank=100.0,
        radius=ring / 2,
        outer_ring_radius=ring,
        position=Point(x, y),
        angle=0.0,
        label_position=Point(x, y),
        font_size=16.0,
        is_centre=is_centre,
    )


@pytest.fixture
def views():
    return load_view_configurations()


@pytest.fixture
def brands(views):
    return views["brands"]


@pytest.fixture
def markets(views):
    return views["markets"]


@pytest.fixture
def layout_settings():
    return LayoutSettings(margin=100.0)


@pytest.fixture
def three_entities():
    """A, B, C with sizes 10, 50, 100."""
    return [
        {"id": 1, "label": "A", "absoluteSize": 10},
        {"id": 2, "label": "B", "absoluteSize": 50},
        {"id": 3, "label": "C", "absoluteSize": 100},
    ]


@pytest.fixture
def scenario_payload(three_entities):
    """One A->B flow with in=40, out=10."""
    return {
        "entities": three_entities,
        "flows_brands": [flow(1, 2, in_abs=40, out_abs=10)],
        "flows_markets": [],
    }


@pytest.fixture
def triangle_payload(three_entities):
    """Pairwise flows around A, B, C plus market flows for every entity."""
    return {
        "entities": three_entities,
        "flows_brands": [
            flow(1, 2, in_abs=10, out_abs=20),
            flow(2, 3, in_abs=5, out_abs=7),
            flow(3, 1, in_abs=4, out_abs=6),
        ],
        "flows_markets": [
            flow(1, in_abs=30, out_abs=10),
            flow(2, in_abs=15, out_abs=25),
            flow(3, in_abs=8, out_abs=8),
        ],
    }


@pytest.fixture
def approx_angle():
    def _check(actual, expected):
        return math.isclose(actual % (2 * math.pi), expected % (2 * math.pi), abs_tol=1e-9)
    return _check
