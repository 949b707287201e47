"""Tests for flow geometry."""

import math

import pytest

from conftest import make_entity

from bubbleflow_analysis.geometry import (
    build_segment_shapes,
    outer_ring_point,
    parallel_offset_distance,
    parallel_offset_points,
    split_point,
    split_ratio,
)
from bubbleflow_analysis.models import (
    BidirectionalStyle,
    FlowRecord,
    NetDirection,
    Point,
    RenderType,
    SegmentDirection,
)


def _record(in_flow, out_flow):
    return FlowRecord(
        id="1-2",
        from_id=1,
        to_id=2,
        absolute_in_flow=in_flow,
        absolute_out_flow=out_flow,
        net_flow=abs(out_flow - in_flow),
        net_direction=NetDirection.OUT if out_flow >= in_flow else NetDirection.IN,
        signed_net_flow=out_flow - in_flow,
        percentile_rank=100.0,
        size=100.0,
    )


def test_outer_ring_point_faces_target():
    assert outer_ring_point(Point(0, 0), Point(10, 0), 5) == pytest.approx((5, 0))
    p = outer_ring_point(Point(0, 0), Point(3, 4), 10)
    assert p == pytest.approx((6, 8))


@pytest.mark.parametrize("out_ratio", [i / 20 for i in range(21)])
def test_split_ratio_stays_in_bounds(out_ratio):
    ratio = split_ratio(100 * (1 - out_ratio), 100 * out_ratio)
    assert 0.3 - 1e-12 <= ratio <= 0.7 + 1e-12


def test_split_ratio_extremes():
    assert split_ratio(0, 0) == 0.5
    assert split_ratio(0, 10) == pytest.approx(0.3)
    assert split_ratio(10, 0) == pytest.approx(0.7)
    assert split_ratio(40, 10) == pytest.approx(0.62)


def test_split_point():
    assert split_point(Point(0, 0), Point(10, 20), 0.3) == pytest.approx((3, 6))


def test_parallel_offsets_horizontal():
    positive, negative = parallel_offset_points(Point(0, 0), Point(10, 0), 5)
    assert positive[0] == pytest.approx((0, -5))
    assert positive[1] == pytest.approx((10, -5))
    assert negative[0] == pytest.approx((0, 5))
    assert negative[1] == pytest.approx((10, 5))


@pytest.mark.parametrize("degrees", range(0, 360, 15))
def test_parallel_lines_never_coincide(degrees):
    theta = math.radians(degrees)
    end = Point(100 * math.cos(theta), 100 * math.sin(theta))
    (p0, _), (n0, _) = parallel_offset_points(Point(0, 0), end, 4)
    assert math.dist(p0, n0) == pytest.approx(8)


def test_parallel_offset_distance_scales_and_clamps():
    assert parallel_offset_distance(2, 2, 9, 5) == 5
    assert parallel_offset_distance(9, 2, 9, 5) == 10
    assert parallel_offset_distance(20, 2, 9, 5) == 10
    assert parallel_offset_distance(0, 2, 9, 5) == 5


def test_unidirectional_shape():
    source = make_entity(1, 0, 0)
    target = make_entity(2, 100, 0)
    (shape,) = build_segment_shapes(_record(1, 2), source, target, RenderType.UNIDIRECTIONAL)
    assert shape.direction is SegmentDirection.SINGLE
    assert shape.start == pytest.approx((10, 0))
    assert shape.end == pytest.approx((90, 0))
    assert shape.mid == pytest.approx((50, 0))
    assert shape.split is None


def test_split_shapes_share_split_point():
    source = make_entity(1, 0, 0)
    target = make_entity(2, 100, 0)
    outgoing, incoming = build_segment_shapes(
        _record(40, 10), source, target, RenderType.BIDIRECTIONAL, BidirectionalStyle.SPLIT
    )
    assert outgoing.direction is SegmentDirection.OUTGOING
    assert incoming.direction is SegmentDirection.INCOMING
    assert outgoing.start == pytest.approx((10, 0))
    assert outgoing.end == pytest.approx((10 + 80 * 0.62, 0))
    assert incoming.start == pytest.approx((90, 0))
    assert incoming.end == outgoing.end == outgoing.split == incoming.split


def test_parallel_shapes_run_in_opposite_directions():
    source = make_entity(1, 0, 0)
    target = make_entity(2, 100, 0)
    outgoing, incoming = build_segment_shapes(
        _record(40, 10), source, target, RenderType.BIDIRECTIONAL, BidirectionalStyle.PARALLEL, offset_distance=5
    )
    assert outgoing.start == pytest.approx((10, -5))
    assert outgoing.end == pytest.approx((90, -5))
    assert incoming.start == pytest.approx((90, 5))
    assert incoming.end == pytest.approx((10, 5))
