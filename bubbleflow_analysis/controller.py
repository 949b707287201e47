"""
Interaction controller.

Owns the current parameters, the raw payload snapshot and the published
RenderModel. Every transition rebuilds the model synchronously and swaps it
in as one object; a failed rebuild keeps serving the last good model.
Payload reloads are the only asynchronous path and are guarded by a
generation counter so a slow, superseded load is never published.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional

from .flows import run_pipeline
from .layout import Layout, LayoutSettings, compute_layout
from .models import (
    BidirectionalStyle,
    FlowType,
    InteractionParams,
    Metric,
    Theme,
    coerce_enum,
)
from .render import RenderModel, build_render_model
from .rules import RenderingRuleConfig, on_theme_change, validate_rule_config
from .source import centre_id, entity_frame, validate_payload
from .views import DEFAULT_VIEW_ID, ViewConfiguration, get_view_configuration

logger = logging.getLogger(__name__)


class InteractionController:
    def __init__(
        self,
        payload: Mapping[str, Any],
        views: Mapping[str, ViewConfiguration],
        rule_config: Optional[RenderingRuleConfig] = None,
        layout_settings: Optional[LayoutSettings] = None,
        width: float = 1200.0,
        height: float = 900.0,
        view_id: str = DEFAULT_VIEW_ID,
        threshold: float = 0.0,
        centre_flow_enabled: bool = False,
        style: BidirectionalStyle = BidirectionalStyle.SPLIT,
        max_workers: int = 2,
    ):
        if not views:
            raise ValueError("At least one view configuration is required.")
        validate_payload(payload, views)
        view = get_view_configuration(views, view_id)
        self._views = dict(views)
        self._rule_config = validate_rule_config(rule_config or RenderingRuleConfig())
        self._layout_settings = layout_settings or LayoutSettings()
        self._style = coerce_enum(BidirectionalStyle, style)
        self._width, self._height = self._check_canvas(width, height)
        self._lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bubbleflow-load")
        self._requested_generation = 0
        self._generation = 0
        self.last_error: Optional[BaseException] = None

        self._payload = payload
        self._centre_id = centre_id(payload)
        self._layout = self._build_layout(payload, self._width, self._height)
        params = InteractionParams(
            view_id=view.id,
            metric=view.default_metric,
            flow_type=view.default_flow_type,
            threshold=self._check_threshold(threshold),
            centre_flow_enabled=bool(centre_flow_enabled),
        )
        # The first model must build; there is no previous snapshot to fall back to
        self._params = params
        self._model = self._build(params)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def params(self) -> InteractionParams:
        return self._params

    @property
    def model(self) -> RenderModel:
        return self._model

    @property
    def view(self) -> ViewConfiguration:
        return self._views[self._params.view_id]

    @property
    def rule_config(self) -> RenderingRuleConfig:
        return self._rule_config

    @property
    def generation(self) -> int:
        return self._generation

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    @staticmethod
    def _check_canvas(width: float, height: float):
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas dimensions must be positive, got {width}x{height}")
        return float(width), float(height)

    @staticmethod
    def _check_threshold(threshold: float) -> float:
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ValueError(f"Threshold must be numeric, got {threshold!r}")
        if not 0.0 <= threshold <= 100.0:
            raise ValueError(f"Threshold must be within [0, 100], got {threshold}")
        return float(threshold)

    def _build_layout(self, payload: Mapping[str, Any], width: float, height: float) -> Layout:
        return compute_layout(
            entity_frame(payload), width, height, self._layout_settings, centre_id(payload)
        )

    def _build(
        self,
        params: InteractionParams,
        payload: Optional[Mapping[str, Any]] = None,
        layout: Optional[Layout] = None,
        rule_config: Optional[RenderingRuleConfig] = None,
        generation: Optional[int] = None,
    ) -> RenderModel:
        payload = self._payload if payload is None else payload
        layout = self._layout if layout is None else layout
        rule_config = self._rule_config if rule_config is None else rule_config
        generation = self._generation if generation is None else generation
        view = get_view_configuration(self._views, params.view_id)
        records = run_pipeline(payload, params, view, centre_id(payload))
        return build_render_model(layout, records, params, view, rule_config, self._style, generation)

    def _apply(self, params: InteractionParams, drop_missing_flow_focus: bool = False, **overrides) -> RenderModel:
        """Rebuild with ``params`` and publish, or keep the last good model on failure.

        With ``drop_missing_flow_focus`` a focused flow that is absent from the
        rebuilt model is unfocused and the model rebuilt once more.
        """
        with self._lock:
            try:
                model = self._build(params, **overrides)
                focus_flow = params.focus_flow_id
                if drop_missing_flow_focus and focus_flow is not None and model.flow(focus_flow) is None:
                    logger.info("Focused flow %s not present in view '%s'; clearing focus", focus_flow, params.view_id)
                    params = replace(params, focus_flow_id=None)
                    model = self._build(params, **overrides)
            except Exception as exc:
                self.last_error = exc
                logger.exception("Render model rebuild failed; keeping previous model")
                return self._model
            self._params = params
            if "layout" in overrides:
                self._layout = overrides["layout"]
            if "rule_config" in overrides:
                self._rule_config = overrides["rule_config"]
            self._model = model
            self.last_error = None
            return model

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select_view(self, view_id: str) -> RenderModel:
        """Switch views, resetting metric and flow type to the view's defaults.

        Focus carries over unless the focused entity or flow does not exist
        in the new view.
        """
        view = get_view_configuration(self._views, view_id)
        current = self._params
        params = replace(
            current,
            view_id=view.id,
            metric=view.default_metric,
            flow_type=view.default_flow_type,
        )
        if params.focus_entity_id is not None and params.focus_entity_id not in self._entity_ids():
            params = replace(params, focus_entity_id=None)
        return self._apply(params, drop_missing_flow_focus=True)

    def select_metric(self, metric) -> RenderModel:
        metric = coerce_enum(Metric, metric)
        if not self.view.supports_metric(metric):
            raise ValueError(f"View '{self.view.id}' does not support metric '{metric.value}'")
        return self._apply(replace(self._params, metric=metric))

    def select_flow_type(self, flow_type) -> RenderModel:
        flow_type = coerce_enum(FlowType, flow_type)
        if not self.view.supports_flow_type(flow_type):
            raise ValueError(f"View '{self.view.id}' does not support flow type '{flow_type.value}'")
        return self._apply(replace(self._params, flow_type=flow_type))

    def set_threshold(self, threshold: float) -> RenderModel:
        return self._apply(replace(self._params, threshold=self._check_threshold(threshold)))

    def set_centre_flow(self, enabled: bool) -> RenderModel:
        if not self.view.supports_centre_flow and enabled:
            logger.info("View '%s' does not aggregate to the centre; flag has no effect", self.view.id)
        return self._apply(replace(self._params, centre_flow_enabled=bool(enabled)))

    def select_entity(self, entity_id: int) -> RenderModel:
        """Toggle focus on an entity. Clicking the centre entity does nothing."""
        if entity_id == self._centre_id:
            logger.debug("Ignoring selection of the centre entity")
            return self._model
        if entity_id not in self._entity_ids():
            raise ValueError(f"Unknown entity id {entity_id!r}")
        if self._params.focus_entity_id == entity_id:
            params = replace(self._params, focus_entity_id=None)
        else:
            params = replace(self._params, focus_entity_id=entity_id, focus_flow_id=None)
        return self._apply(params)

    def select_flow(self, flow_id: str) -> RenderModel:
        """Toggle focus on a flow; focusing a flow clears entity focus."""
        if self._params.focus_flow_id == flow_id:
            return self._apply(replace(self._params, focus_flow_id=None))
        if self._model.flow(flow_id) is None:
            raise ValueError(f"Unknown flow id {flow_id!r}")
        return self._apply(replace(self._params, focus_flow_id=flow_id, focus_entity_id=None))

    def set_theme(self, theme) -> RenderModel:
        theme = coerce_enum(Theme, theme)
        return self._apply(self._params, rule_config=on_theme_change(self._rule_config, theme))

    def resize(self, width: float, height: float) -> RenderModel:
        width, height = self._check_canvas(width, height)
        with self._lock:
            layout = self._build_layout(self._payload, width, height)
            model = self._apply(self._params, layout=layout)
            if self._layout is layout:
                self._width, self._height = width, height
            return model

    def _entity_ids(self):
        return {entity.id for entity in self._layout.entities if not entity.is_centre}

    # ------------------------------------------------------------------
    # Asynchronous reload
    # ------------------------------------------------------------------

    def reload(self, loader: Callable[[], Mapping[str, Any]]) -> "Future[bool]":
        """Fetch a new payload in the background and publish it if still current.

        The returned future resolves to True when the load was published and
        False when it was superseded by a later reload or failed.
        """
        with self._lock:
            self._requested_generation += 1
            generation = self._requested_generation
        logger.info("Reload requested (generation %d)", generation)
        return self._executor.submit(self._load, generation, loader)

    def _load(self, generation: int, loader: Callable[[], Mapping[str, Any]]) -> bool:
        try:
            payload = loader()
            validate_payload(payload, self._views)
        except Exception as exc:
            with self._lock:
                if generation == self._requested_generation:
                    self.last_error = exc
            logger.exception("Reload generation %d failed", generation)
            return False

        with self._lock:
            if generation != self._requested_generation:
                logger.info(
                    "Dropping stale reload generation %d (latest is %d)", generation, self._requested_generation
                )
                return False
            params = self._params
            layout = self._build_layout(payload, self._width, self._height)
            entity_ids = {e.id for e in layout.entities if not e.is_centre}
            if params.focus_entity_id is not None and params.focus_entity_id not in entity_ids:
                params = replace(params, focus_entity_id=None)
            try:
                model = self._build(params, payload=payload, layout=layout, generation=generation)
                if params.focus_flow_id is not None and model.flow(params.focus_flow_id) is None:
                    params = replace(params, focus_flow_id=None)
                    model = self._build(params, payload=payload, layout=layout, generation=generation)
            except Exception as exc:
                self.last_error = exc
                logger.exception("Render model rebuild failed for reload generation %d", generation)
                return False
            self._payload = payload
            self._centre_id = centre_id(payload)
            self._layout = layout
            self._params = params
            self._generation = generation
            self._model = model
            self.last_error = None
        logger.info("Published reload generation %d (%d flows)", generation, len(model.flows))
        return True

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "InteractionController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
