"""
Rendering rules: color, direction, markers, opacity and thickness.

All resolvers are pure functions of a RenderingRuleConfig and their inputs.
The config is only ever replaced whole (see ``on_theme_change``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

import numpy as np
from matplotlib.colors import is_color_like, to_hex, to_rgba

from .errors import ConfigurationError
from .models import (
    ArrowDirection,
    FlowRecord,
    FlowType,
    MarkerPosition,
    SegmentDirection,
    Theme,
    coerce_enum,
)
from .ranking import interpolate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Palettes
# ---------------------------------------------------------------------------

ENTITY_PALETTE: Tuple[str, ...] = (
    "#FF5733", "#03a9f4", "#5733FF", "#FF33A6", "#33FF00",
    "#FF0033", "#FFE701", "#33C866", "#d289ff", "#009688",
    "#ff98a1", "#FF3366", "#3382FF", "#A633FF", "#FF33F0",
    "#9DFF33", "#FF4033", "#335DFF", "#E733FF", "#FF338C",
)

COLOR_KEYS = ("in", "out", "net_positive", "net_negative", "both")

DEFAULT_FLOW_COLORS: Dict[Theme, Dict[str, str]] = {
    Theme.LIGHT: {
        "in": "#03a9f4",
        "out": "#FF5733",
        "net_positive": "#33C866",
        "net_negative": "#FF0033",
        "both": "#FFB300",
    },
    Theme.DARK: {
        "in": "#4fc3f7",
        "out": "#ff8a65",
        "net_positive": "#69f0ae",
        "net_negative": "#ff5252",
        "both": "#FFE701",
    },
}

DEFAULT_THEME_COLORS: Dict[Theme, Dict[str, str]] = {
    Theme.LIGHT: {"background": "#ffffff", "centre": "#424242", "label": "#212121"},
    Theme.DARK: {"background": "#121212", "centre": "#e0e0e0", "label": "#f5f5f5"},
}

INCOMING_SOFTEN = 0.2  # Blend toward background so incoming reads as the weaker half


@dataclass(frozen=True)
class OpacityLevels:
    base: float  # Nothing focused
    highlight: float  # The focused element
    default: float  # Connected to the focused element
    dimmed: float  # Unrelated to the focused element


@dataclass(frozen=True)
class RenderingRuleConfig:
    theme: Theme = Theme.LIGHT
    entity_opacity: OpacityLevels = OpacityLevels(base=0.8, highlight=1.0, default=0.5, dimmed=0.2)
    flow_opacity: OpacityLevels = OpacityLevels(base=0.6, highlight=1.0, default=0.5, dimmed=0.2)
    min_thickness: float = 2.0
    max_thickness: float = 9.0
    min_marker_size: float = 5.0
    max_marker_size: float = 15.0
    parallel_offset: float = 5.0
    flow_colors: Dict[Theme, Dict[str, str]] = field(default_factory=lambda: {
        theme: dict(colors) for theme, colors in DEFAULT_FLOW_COLORS.items()
    })
    theme_colors: Dict[Theme, Dict[str, str]] = field(default_factory=lambda: {
        theme: dict(colors) for theme, colors in DEFAULT_THEME_COLORS.items()
    })
    palette: Tuple[str, ...] = ENTITY_PALETTE


def validate_rule_config(config: RenderingRuleConfig) -> RenderingRuleConfig:
    """Fail loudly on a malformed config. Returns the config unchanged."""
    errors = []
    for name in ("entity_opacity", "flow_opacity"):
        levels = getattr(config, name)
        for level_name in ("base", "highlight", "default", "dimmed"):
            value = getattr(levels, level_name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name}.{level_name} must be within [0, 1], got {value}")
    if config.min_thickness < 0 or config.max_thickness < config.min_thickness:
        errors.append(f"thickness range [{config.min_thickness}, {config.max_thickness}] is invalid")
    if config.min_marker_size < 0 or config.max_marker_size < config.min_marker_size:
        errors.append(f"marker range [{config.min_marker_size}, {config.max_marker_size}] is invalid")
    if config.parallel_offset < 0:
        errors.append("parallel_offset must not be negative")

    for theme in Theme:
        colors = config.flow_colors.get(theme, {})
        for key in COLOR_KEYS:
            if key not in colors:
                errors.append(f"flow_colors[{theme.value}].{key} is missing")
            elif not is_color_like(colors[key]):
                errors.append(f"flow_colors[{theme.value}].{key}: invalid color {colors[key]!r}")
        extra = set(colors) - set(COLOR_KEYS)
        if extra:
            errors.append(f"flow_colors[{theme.value}] has unknown key(s): {', '.join(sorted(extra))}")
        theme_colors = config.theme_colors.get(theme, {})
        for key in ("background", "centre", "label"):
            if not is_color_like(theme_colors.get(key)):
                errors.append(f"theme_colors[{theme.value}].{key}: invalid color {theme_colors.get(key)!r}")

    if not config.palette:
        errors.append("palette must not be empty")
    for idx, color in enumerate(config.palette):
        if not is_color_like(color):
            errors.append(f"palette[{idx}]: invalid color {color!r}")

    if errors:
        raise ConfigurationError("Invalid rendering rules: " + "; ".join(errors))
    return config


def on_theme_change(config: RenderingRuleConfig, theme) -> RenderingRuleConfig:
    """Return a new config for ``theme``; the old one is left untouched."""
    theme = coerce_enum(Theme, theme)
    logger.debug("Theme change: %s -> %s", config.theme.value, theme.value)
    return replace(config, theme=theme)


# ---------------------------------------------------------------------------
# Color helpers
# ---------------------------------------------------------------------------

def blend_color(c1, c2, t: float = 0.5):
    """Linear interpolation between two colors."""
    a = np.array(to_rgba(c1))
    b = np.array(to_rgba(c2))
    return a * (1 - t) + b * t


def soften_color(color, amount: float, base):
    """Reduce saturation by blending toward the background."""
    return blend_color(color, base, max(0.0, min(1.0, amount)))


def background_color(config: RenderingRuleConfig) -> str:
    return config.theme_colors[config.theme]["background"]


def label_color(config: RenderingRuleConfig) -> str:
    return config.theme_colors[config.theme]["label"]


def entity_color(entity_id: int, is_centre: bool, config: RenderingRuleConfig) -> str:
    if is_centre:
        return config.theme_colors[config.theme]["centre"]
    return config.palette[int(entity_id) % len(config.palette)]


def color_key(record: FlowRecord, flow_type: FlowType) -> str:
    if flow_type is FlowType.IN:
        return "in"
    if flow_type is FlowType.OUT:
        return "out"
    if flow_type is FlowType.NET:
        return "net_positive" if record.signed_net_flow >= 0 else "net_negative"
    if flow_type is FlowType.BOTH:
        return "both"
    raise ValueError(f"Unhandled flow type: {flow_type!r}")


def flow_color(
    record: FlowRecord,
    flow_type: FlowType,
    config: RenderingRuleConfig,
    segment: SegmentDirection = SegmentDirection.SINGLE,
) -> str:
    color = config.flow_colors[config.theme][color_key(record, flow_type)]
    if segment is SegmentDirection.INCOMING:
        return to_hex(soften_color(color, INCOMING_SOFTEN, background_color(config)))
    return to_hex(color)


# ---------------------------------------------------------------------------
# Direction and markers
# ---------------------------------------------------------------------------

def flow_direction(record: FlowRecord, flow_type: FlowType) -> ArrowDirection:
    if flow_type is FlowType.IN:
        return ArrowDirection.REVERSED
    if flow_type is FlowType.OUT:
        return ArrowDirection.NORMAL
    if flow_type is FlowType.NET:
        return ArrowDirection.NORMAL if record.signed_net_flow >= 0 else ArrowDirection.REVERSED
    if flow_type is FlowType.BOTH:
        return ArrowDirection.BIDIRECTIONAL
    raise ValueError(f"Unhandled flow type: {flow_type!r}")


def marker_position(direction: ArrowDirection, segment: SegmentDirection) -> MarkerPosition:
    """Where the arrowhead goes on a segment.

    Split segments are each drawn toward their own tip, so both carry an end
    marker regardless of the flow's overall direction.
    """
    if segment in (SegmentDirection.OUTGOING, SegmentDirection.INCOMING):
        return MarkerPosition.END
    if segment is not SegmentDirection.SINGLE:
        raise ValueError(f"Unhandled segment direction: {segment!r}")
    if direction is ArrowDirection.NORMAL:
        return MarkerPosition.END
    if direction is ArrowDirection.REVERSED:
        return MarkerPosition.START
    if direction is ArrowDirection.BIDIRECTIONAL:
        return MarkerPosition.BOTH
    raise ValueError(f"Unhandled arrow direction: {direction!r}")


# ---------------------------------------------------------------------------
# Focus and opacity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FocusState:
    focus_entity_id: Optional[int] = None
    focus_flow_id: Optional[str] = None
    connected_entity_ids: FrozenSet[int] = frozenset()
    connected_flow_ids: FrozenSet[str] = frozenset()

    @property
    def active(self) -> bool:
        return self.focus_entity_id is not None or self.focus_flow_id is not None


def focus_state(
    records: Iterable[FlowRecord],
    focus_entity_id: Optional[int] = None,
    focus_flow_id: Optional[str] = None,
) -> FocusState:
    """Work out which entities and flows are connected to the focused element."""
    records = list(records)
    entities = set()
    flows = set()
    if focus_entity_id is not None:
        for record in records:
            if record.touches(focus_entity_id):
                flows.add(record.id)
                entities.update((record.from_id, record.to_id))
        entities.discard(focus_entity_id)
    elif focus_flow_id is not None:
        focused = next((r for r in records if r.id == focus_flow_id), None)
        if focused is not None:
            entities.update((focused.from_id, focused.to_id))
            for record in records:
                if record.id != focused.id and (record.touches(focused.from_id) or record.touches(focused.to_id)):
                    flows.add(record.id)
    return FocusState(focus_entity_id, focus_flow_id, frozenset(entities), frozenset(flows))


def entity_opacity(entity_id: int, state: FocusState, config: RenderingRuleConfig) -> float:
    levels = config.entity_opacity
    if not state.active:
        return levels.base
    if state.focus_entity_id == entity_id:
        return levels.highlight
    if entity_id in state.connected_entity_ids:
        return levels.default
    return levels.dimmed


def flow_opacity(flow_id: str, state: FocusState, config: RenderingRuleConfig) -> float:
    levels = config.flow_opacity
    if not state.active:
        return levels.base
    if state.focus_flow_id == flow_id:
        return levels.highlight
    if flow_id in state.connected_flow_ids:
        return levels.default
    return levels.dimmed


# ---------------------------------------------------------------------------
# Thickness and markers
# ---------------------------------------------------------------------------

def thickness(value: float, config: RenderingRuleConfig) -> float:
    """Map a 0-100 ranked or relative value onto the thickness bounds."""
    return interpolate(value, config.min_thickness, config.max_thickness)


def marker_size(line_thickness: float, config: RenderingRuleConfig) -> float:
    span = config.max_thickness - config.min_thickness
    if span <= 0:
        return config.max_marker_size
    pct = (line_thickness - config.min_thickness) / span * 100.0
    return interpolate(pct, config.min_marker_size, config.max_marker_size)
