"""
Flow geometry: ring endpoints, split points and parallel offsets.

Coordinates are canvas coordinates (y grows downward, matching the layout).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .models import BidirectionalStyle, Entity, FlowRecord, Point, RenderType, SegmentDirection

SPLIT_RATIO_BASE = 0.3
SPLIT_RATIO_SPAN = 0.4


@dataclass(frozen=True)
class SegmentShape:
    direction: SegmentDirection
    start: Point
    end: Point
    mid: Point
    split: Optional[Point] = None


def midpoint(a: Point, b: Point) -> Point:
    return Point((a.x + b.x) / 2.0, (a.y + b.y) / 2.0)


def outer_ring_point(centre: Point, toward: Point, radius: float) -> Point:
    """Point on a ring of ``radius`` around ``centre`` facing ``toward``."""
    theta = math.atan2(toward.y - centre.y, toward.x - centre.x)
    return Point(centre.x + radius * math.cos(theta), centre.y + radius * math.sin(theta))


def split_ratio(in_value: float, out_value: float) -> float:
    """Fraction along start->end where a two-way flow splits.

    Stronger outflow pulls the split toward the start, so the thick outgoing
    part is short and the thin incoming part is long. Always within
    [0.3, 0.7]; a zero total splits at the midpoint.
    """
    total = in_value + out_value
    if total == 0:
        return 0.5
    out_ratio = min(max(out_value / total, 0.0), 1.0)
    return SPLIT_RATIO_BASE + SPLIT_RATIO_SPAN * (1.0 - out_ratio)


def split_point(start: Point, end: Point, ratio: float) -> Point:
    return Point(start.x + (end.x - start.x) * ratio, start.y + (end.y - start.y) * ratio)


def parallel_offset_points(
    start: Point, end: Point, distance: float
) -> Tuple[Tuple[Point, Point], Tuple[Point, Point]]:
    """Shift start->end sideways by ``distance`` in both directions.

    Returns:
        ((positive_start, positive_end), (negative_start, negative_end))
    """
    angle = math.atan2(end.y - start.y, end.x - start.x)
    offset_x = distance * math.sin(angle)
    offset_y = distance * math.cos(angle)
    positive = (
        Point(start.x + offset_x, start.y - offset_y),
        Point(end.x + offset_x, end.y - offset_y),
    )
    negative = (
        Point(start.x - offset_x, start.y + offset_y),
        Point(end.x - offset_x, end.y + offset_y),
    )
    return positive, negative


def parallel_offset_distance(
    thickness: float, min_thickness: float, max_thickness: float, base_offset: float
) -> float:
    """Scale the base offset from [offset, 2*offset] by thickness, clamped."""
    if max_thickness <= min_thickness:
        return base_offset
    t = (thickness - min_thickness) / (max_thickness - min_thickness)
    t = max(0.0, min(1.0, t))
    return base_offset + base_offset * t


def flow_endpoints(source: Entity, target: Entity) -> Tuple[Point, Point]:
    """Where the line between two bubbles crosses each outer ring."""
    start = outer_ring_point(source.position, target.position, source.outer_ring_radius)
    end = outer_ring_point(target.position, source.position, target.outer_ring_radius)
    return start, end


def build_segment_shapes(
    record: FlowRecord,
    source: Entity,
    target: Entity,
    render_type: RenderType,
    style: BidirectionalStyle = BidirectionalStyle.SPLIT,
    offset_distance: float = 0.0,
) -> Tuple[SegmentShape, ...]:
    """One shape for a one-way flow, an outgoing/incoming pair for a two-way flow."""
    start, end = flow_endpoints(source, target)

    if render_type is RenderType.UNIDIRECTIONAL:
        return (SegmentShape(SegmentDirection.SINGLE, start, end, midpoint(start, end)),)
    if render_type is not RenderType.BIDIRECTIONAL:
        raise ValueError(f"Unhandled render type: {render_type!r}")

    if style is BidirectionalStyle.SPLIT:
        ratio = split_ratio(record.absolute_in_flow, record.absolute_out_flow)
        split = split_point(start, end, ratio)
        # Incoming runs from the target back to the split, pointing at the source
        return (
            SegmentShape(SegmentDirection.OUTGOING, start, split, midpoint(start, split), split),
            SegmentShape(SegmentDirection.INCOMING, end, split, midpoint(end, split), split),
        )
    if style is BidirectionalStyle.PARALLEL:
        (pos_start, pos_end), (neg_start, neg_end) = parallel_offset_points(start, end, offset_distance)
        return (
            SegmentShape(SegmentDirection.OUTGOING, pos_start, pos_end, midpoint(pos_start, pos_end)),
            SegmentShape(SegmentDirection.INCOMING, neg_end, neg_start, midpoint(neg_end, neg_start)),
        )
    raise ValueError(f"Unhandled bidirectional style: {style!r}")
