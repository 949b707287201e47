"""
View configurations.

A view names the payload list it reads flows from, which flow types and
metrics it offers, and a prioritized set of rules that decide whether a flow
type is drawn as one line or as a two-way pair. Definitions are plain dicts
so they can be supplied from JSON; ``load_view_configurations`` validates
them once at startup and fails loudly on unknown keys.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .models import FlowType, Metric, RenderType, coerce_enum

logger = logging.getLogger(__name__)

# =============================================================================
# Default view definitions
# =============================================================================
DEFAULT_VIEW_ID = "markets"

VIEW_DEFINITIONS: Dict[str, Dict[str, Any]] = {
    "markets": {
        "name": "Markets",
        "data_source_key": "flows_markets",
        # Market flows already point at the centre node
        "supports_centre_flow": False,
        "default_flow_type": "net",
        "supported_flow_types": ["out", "in", "net", "both"],
        "default_metric": "churn",
        "supported_metrics": ["churn", "switching"],
        "render_rules": [
            {"flow_types": ["both"], "render_type": "bidirectional", "priority": 10},
            {"flow_types": ["in", "out", "net"], "render_type": "unidirectional", "priority": 5},
        ],
    },
    "brands": {
        "name": "Brands",
        "data_source_key": "flows_brands",
        # Pairwise brand flows can be summed per entity into the centre
        "supports_centre_flow": True,
        "default_flow_type": "net",
        "supported_flow_types": ["out", "in", "net", "both"],
        "default_metric": "churn",
        "supported_metrics": ["churn", "switching"],
        "render_rules": [
            {"flow_types": ["in", "out"], "render_type": "bidirectional", "priority": 15},
            {"flow_types": ["both"], "render_type": "bidirectional", "priority": 10},
            {"flow_types": ["net"], "render_type": "unidirectional", "priority": 5},
        ],
    },
}


@dataclass(frozen=True)
class RenderRule:
    flow_types: FrozenSet[FlowType]
    render_type: RenderType
    priority: int = 0


@dataclass(frozen=True)
class ViewConfiguration:
    id: str
    name: str
    data_source_key: str
    supports_centre_flow: bool
    default_flow_type: FlowType
    supported_flow_types: Tuple[FlowType, ...]
    default_metric: Metric
    supported_metrics: Tuple[Metric, ...]
    render_rules: Tuple[RenderRule, ...] = ()

    def supports_flow_type(self, flow_type: FlowType) -> bool:
        return flow_type in self.supported_flow_types

    def supports_metric(self, metric: Metric) -> bool:
        return metric in self.supported_metrics


def _enum_list(enum_cls, values: Iterable[Any], field_path: str) -> Tuple[Any, ...]:
    members = []
    for value in values:
        try:
            members.append(coerce_enum(enum_cls, value))
        except ValueError as exc:
            raise ConfigurationError(f"{field_path}: {exc}") from None
    return tuple(members)


def _build_view(view_id: str, raw: Mapping[str, Any]) -> ViewConfiguration:
    required = (
        "data_source_key",
        "default_flow_type",
        "supported_flow_types",
        "default_metric",
        "supported_metrics",
    )
    missing = [key for key in required if key not in raw]
    if missing:
        raise ConfigurationError(f"View '{view_id}' is missing: {', '.join(missing)}")

    flow_types = _enum_list(FlowType, raw["supported_flow_types"], f"{view_id}.supported_flow_types")
    metrics = _enum_list(Metric, raw["supported_metrics"], f"{view_id}.supported_metrics")
    if not flow_types or not metrics:
        raise ConfigurationError(f"View '{view_id}' must support at least one flow type and metric")

    (default_flow_type,) = _enum_list(FlowType, [raw["default_flow_type"]], f"{view_id}.default_flow_type")
    (default_metric,) = _enum_list(Metric, [raw["default_metric"]], f"{view_id}.default_metric")
    if default_flow_type not in flow_types:
        raise ConfigurationError(f"View '{view_id}' default flow type '{default_flow_type.value}' is not supported")
    if default_metric not in metrics:
        raise ConfigurationError(f"View '{view_id}' default metric '{default_metric.value}' is not supported")

    rules = []
    for idx, rule in enumerate(raw.get("render_rules", [])):
        path = f"{view_id}.render_rules[{idx}]"
        rule_types = frozenset(_enum_list(FlowType, rule.get("flow_types", []), f"{path}.flow_types"))
        (render_type,) = _enum_list(RenderType, [rule.get("render_type")], f"{path}.render_type")
        rules.append(RenderRule(rule_types, render_type, int(rule.get("priority", 0))))
    rules.sort(key=lambda r: r.priority, reverse=True)

    uncovered = [ft.value for ft in flow_types if not any(ft in r.flow_types for r in rules)]
    if uncovered:
        raise ConfigurationError(f"View '{view_id}' has no render rule for flow type(s): {', '.join(uncovered)}")

    return ViewConfiguration(
        id=view_id,
        name=str(raw.get("name", view_id.title())),
        data_source_key=str(raw["data_source_key"]),
        supports_centre_flow=bool(raw.get("supports_centre_flow", False)),
        default_flow_type=default_flow_type,
        supported_flow_types=flow_types,
        default_metric=default_metric,
        supported_metrics=metrics,
        render_rules=tuple(rules),
    )


def load_view_configurations(
    definitions: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, ViewConfiguration]:
    """Validate view definitions and return them keyed by view id.

    Raises:
        ConfigurationError: on any unknown flow type, metric or render type,
            or when a supported flow type has no render rule.
    """
    definitions = VIEW_DEFINITIONS if definitions is None else definitions
    if not definitions:
        raise ConfigurationError("No view configurations defined.")
    views = {view_id: _build_view(view_id, raw) for view_id, raw in definitions.items()}
    logger.debug("Loaded %d view configuration(s): %s", len(views), ", ".join(views))
    return views


def get_view_configuration(views: Mapping[str, ViewConfiguration], view_id: str) -> ViewConfiguration:
    try:
        return views[view_id]
    except KeyError:
        raise ConfigurationError(
            f"Unknown view '{view_id}' (available: {', '.join(sorted(views))})"
        ) from None


def render_type_for(view: ViewConfiguration, flow_type: FlowType) -> RenderType:
    """Highest-priority rule matching ``flow_type`` wins."""
    for rule in view.render_rules:
        if flow_type in rule.flow_types:
            return rule.render_type
    raise ConfigurationError(f"View '{view.id}' has no render rule for flow type '{flow_type.value}'")
