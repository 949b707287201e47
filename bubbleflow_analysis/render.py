"""
Render model assembly.

Combines a layout, the ranked flow records and the rendering rules into the
immutable RenderModel handed to the drawing layer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from .geometry import SegmentShape, build_segment_shapes, parallel_offset_distance
from .layout import Layout
from .models import (
    BidirectionalStyle,
    Entity,
    FlowRecord,
    FlowSegment,
    FlowType,
    InteractionParams,
    Point,
    RenderType,
    SegmentDirection,
    SegmentLabel,
)
from .rules import (
    FocusState,
    RenderingRuleConfig,
    background_color,
    entity_color,
    entity_opacity,
    flow_color,
    flow_direction,
    flow_opacity,
    focus_state,
    label_color,
    marker_position,
    marker_size,
    thickness,
)
from .views import ViewConfiguration, render_type_for

logger = logging.getLogger(__name__)

LABEL_OFFSET_Y = 10.0


@dataclass(frozen=True)
class RenderModel:
    generation: int
    params: InteractionParams
    layout: Layout
    entities: Tuple[Entity, ...]
    flows: Tuple[FlowRecord, ...]
    segments: Tuple[FlowSegment, ...]
    theme: str
    bidirectional_style: str
    background_color: str = "#ffffff"
    label_color: str = "#212121"

    def entity(self, entity_id: int) -> Optional[Entity]:
        return next((e for e in self.entities if e.id == entity_id), None)

    def flow(self, flow_id: str) -> Optional[FlowRecord]:
        return next((f for f in self.flows if f.id == flow_id), None)

    def segments_for(self, flow_id: str) -> Tuple[FlowSegment, ...]:
        return tuple(s for s in self.segments if s.parent_flow_id == flow_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generation": self.generation,
            "params": self.params.to_dict(),
            "theme": self.theme,
            "bidirectional_style": self.bidirectional_style,
            "background_color": self.background_color,
            "label_color": self.label_color,
            "layout": self.layout.to_dict(),
            "entities": [entity.to_dict() for entity in self.entities],
            "flows": [flow.to_dict() for flow in self.flows],
            "segments": [segment.to_dict() for segment in self.segments],
        }


# ---------------------------------------------------------------------------
# Segment values and labels
# ---------------------------------------------------------------------------

def _segment_values(
    record: FlowRecord, flow_type: FlowType, segment: SegmentDirection
) -> Tuple[float, float, Optional[float], Optional[float]]:
    """(absolute value, 0-100 size, perc, index) shown on one segment."""
    if segment is SegmentDirection.OUTGOING:
        return record.absolute_out_flow, record.out_size, record.out_perc, record.out_index
    if segment is SegmentDirection.INCOMING:
        return record.absolute_in_flow, record.in_size, record.in_perc, record.in_index
    if flow_type is FlowType.IN:
        return record.absolute_in_flow, record.size, record.in_perc, record.in_index
    if flow_type is FlowType.OUT:
        return record.absolute_out_flow, record.size, record.out_perc, record.out_index
    return record.net_flow, record.size, record.net_perc, record.net_index


def _segment_labels(mid: Point, perc: Optional[float], index: Optional[float]) -> Tuple[SegmentLabel, ...]:
    labels = []
    if perc is not None:
        labels.append(SegmentLabel("percentage", f"{perc * 100:.1f}%", Point(mid.x, mid.y - LABEL_OFFSET_Y)))
    if index is not None:
        labels.append(SegmentLabel("index", f"({index:g})", Point(mid.x, mid.y + LABEL_OFFSET_Y)))
    return tuple(labels)


def _tooltip(source: Entity, target: Entity, segment: SegmentDirection, metric: str, value: float, flow_type: FlowType) -> str:
    return f"{source.label} → {target.label} ({segment.value})\n{metric}: {value:g}\nType: {flow_type.value}"


def build_segments(
    record: FlowRecord,
    source: Entity,
    target: Entity,
    params: InteractionParams,
    render_type: RenderType,
    style: BidirectionalStyle,
    config: RenderingRuleConfig,
    state: FocusState,
) -> List[FlowSegment]:
    flow_type = params.flow_type
    direction = flow_direction(record, flow_type)
    opacity = flow_opacity(record.id, state, config)

    if render_type is RenderType.BIDIRECTIONAL:
        widest = max(thickness(record.in_size or 0.0, config), thickness(record.out_size or 0.0, config))
        offset = parallel_offset_distance(widest, config.min_thickness, config.max_thickness, config.parallel_offset)
    else:
        offset = 0.0
    shapes: Tuple[SegmentShape, ...] = build_segment_shapes(record, source, target, render_type, style, offset)

    segments = []
    for shape in shapes:
        value, size, perc, index = _segment_values(record, flow_type, shape.direction)
        line = thickness(size if size is not None else 0.0, config)
        segments.append(
            FlowSegment(
                id=f"{record.id}-segment-{shape.direction.value}",
                parent_flow_id=record.id,
                direction=shape.direction,
                start_point=shape.start,
                end_point=shape.end,
                mid_point=shape.mid,
                thickness=line,
                color=flow_color(record, flow_type, config, shape.direction),
                opacity=opacity,
                marker_position=marker_position(direction, shape.direction),
                marker_size=marker_size(line, config),
                labels=_segment_labels(shape.mid, perc, index),
                split_point=shape.split,
                tooltip=_tooltip(source, target, shape.direction, params.metric.value, value, flow_type),
            )
        )
    return segments


def _decorate_entity(entity: Entity, state: FocusState, config: RenderingRuleConfig) -> Entity:
    if entity.is_centre:
        tooltip = entity.label
    else:
        tooltip = f"{entity.label}\nSize: {entity.absolute_value:g}\nRank: {entity.percentile_rank:.0f}"
    return replace(
        entity,
        color=entity_color(entity.id, entity.is_centre, config),
        focus=state.focus_entity_id == entity.id,
        opacity=entity_opacity(entity.id, state, config),
        tooltip=tooltip,
    )


def build_render_model(
    layout: Layout,
    records: Tuple[FlowRecord, ...],
    params: InteractionParams,
    view: ViewConfiguration,
    config: RenderingRuleConfig,
    style: BidirectionalStyle = BidirectionalStyle.SPLIT,
    generation: int = 0,
) -> RenderModel:
    state = focus_state(records, params.focus_entity_id, params.focus_flow_id)
    entities = tuple(_decorate_entity(entity, state, config) for entity in layout.entities)
    by_id = {entity.id: entity for entity in entities}
    render_type = render_type_for(view, params.flow_type)

    segments: List[FlowSegment] = []
    skipped = 0
    for record in records:
        source = by_id.get(record.from_id)
        target = by_id.get(record.to_id)
        if source is None or target is None:
            skipped += 1
            continue
        segments.extend(build_segments(record, source, target, params, render_type, style, config, state))
    if skipped:
        logger.warning("Skipped %d flow(s) whose endpoints are not in the layout", skipped)

    return RenderModel(
        generation=generation,
        params=params,
        layout=layout,
        entities=entities,
        flows=records,
        segments=tuple(segments),
        theme=config.theme.value,
        bidirectional_style=style.value,
        background_color=background_color(config),
        label_color=label_color(config),
    )
