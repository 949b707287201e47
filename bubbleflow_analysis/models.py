from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple, Type, TypeVar

E = TypeVar("E", bound=Enum)


# ---------------------------------------------------------------------------
# Closed enums
# ---------------------------------------------------------------------------

class FlowType(str, Enum):
    """Which side of a flow drives ranking, thickness and color."""

    OUT = "out"
    IN = "in"
    NET = "net"
    BOTH = "both"


class Metric(str, Enum):
    CHURN = "churn"
    SWITCHING = "switching"


class RenderType(str, Enum):
    UNIDIRECTIONAL = "unidirectional"
    BIDIRECTIONAL = "bidirectional"


class SegmentDirection(str, Enum):
    SINGLE = "single"
    OUTGOING = "outgoing"
    INCOMING = "incoming"


class ArrowDirection(str, Enum):
    NORMAL = "normal"
    REVERSED = "reversed"
    BIDIRECTIONAL = "bidirectional"


class MarkerPosition(str, Enum):
    START = "start"
    END = "end"
    BOTH = "both"
    NONE = "none"


class NetDirection(str, Enum):
    IN = "in"
    OUT = "out"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class BidirectionalStyle(str, Enum):
    """How two-way flows are drawn: one split line or two parallel lines."""

    SPLIT = "split"
    PARALLEL = "parallel"


def coerce_enum(enum_cls: Type[E], value: Any) -> E:
    """Return ``value`` as a member of ``enum_cls`` or raise ValueError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Unknown {enum_cls.__name__} {value!r} (expected one of: {allowed})") from None


# ---------------------------------------------------------------------------
# Render model value types
# ---------------------------------------------------------------------------

class Point(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class Entity:
    id: int
    label: str
    absolute_value: float
    percentile_rank: float
    radius: float
    outer_ring_radius: float
    position: Point
    angle: float
    label_position: Point
    font_size: float
    is_centre: bool = False
    color: Optional[str] = None
    focus: bool = False
    opacity: float = 1.0
    tooltip: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["position"] = self.position._asdict()
        data["label_position"] = self.label_position._asdict()
        return data


@dataclass(frozen=True)
class FlowRecord:
    """One ranked flow between two entities (or an entity and the centre)."""

    id: str
    from_id: int
    to_id: int
    absolute_in_flow: float
    absolute_out_flow: float
    net_flow: float
    net_direction: NetDirection
    signed_net_flow: float
    percentile_rank: float
    size: float
    in_size: Optional[float] = None
    out_size: Optional[float] = None
    in_perc: Optional[float] = None
    out_perc: Optional[float] = None
    net_perc: Optional[float] = None
    in_index: Optional[float] = None
    out_index: Optional[float] = None
    net_index: Optional[float] = None
    is_centre_flow: bool = False

    def touches(self, entity_id: int) -> bool:
        return self.from_id == entity_id or self.to_id == entity_id

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["net_direction"] = self.net_direction.value
        return data


@dataclass(frozen=True)
class SegmentLabel:
    kind: str
    text: str
    position: Point

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "text": self.text, "position": self.position._asdict()}


@dataclass(frozen=True)
class FlowSegment:
    id: str
    parent_flow_id: str
    direction: SegmentDirection
    start_point: Point
    end_point: Point
    mid_point: Point
    thickness: float
    color: str
    opacity: float
    marker_position: MarkerPosition
    marker_size: float
    labels: Tuple[SegmentLabel, ...] = ()
    split_point: Optional[Point] = None
    tooltip: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_flow_id": self.parent_flow_id,
            "direction": self.direction.value,
            "start_point": self.start_point._asdict(),
            "end_point": self.end_point._asdict(),
            "mid_point": self.mid_point._asdict(),
            "split_point": self.split_point._asdict() if self.split_point is not None else None,
            "thickness": self.thickness,
            "color": self.color,
            "opacity": self.opacity,
            "marker_position": self.marker_position.value,
            "marker_size": self.marker_size,
            "labels": [label.to_dict() for label in self.labels],
            "tooltip": self.tooltip,
        }


@dataclass(frozen=True)
class InteractionParams:
    """The full parameter set one render model is computed from."""

    view_id: str
    metric: Metric
    flow_type: FlowType
    threshold: float = 0.0
    focus_entity_id: Optional[int] = None
    focus_flow_id: Optional[str] = None
    centre_flow_enabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view": self.view_id,
            "metric": self.metric.value,
            "flow_type": self.flow_type.value,
            "threshold": self.threshold,
            "focus_entity_id": self.focus_entity_id,
            "focus_flow_id": self.focus_flow_id,
            "centre_flow_enabled": self.centre_flow_enabled,
        }
