from __future__ import annotations

"""
Command-line entry: load a payload, apply the requested view parameters and
write the resolved render model as JSON for the drawing layer.
"""

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .controller import InteractionController
from .layout import LayoutSettings
from .models import BidirectionalStyle, FlowType, Metric, Theme
from .rules import RenderingRuleConfig
from .source import load_payload
from .views import load_view_configurations


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve a bubble flow render model from a JSON payload.")
    parser.add_argument("--data", type=Path, help="Payload JSON file (default: DATA_FILE)")
    parser.add_argument("--output-dir", type=Path, help="Directory for the render model (default: OUTPUT_DIR)")
    parser.add_argument("--view", help="View id, e.g. markets or brands")
    parser.add_argument("--metric", choices=[m.value for m in Metric])
    parser.add_argument("--flow-type", choices=[f.value for f in FlowType])
    parser.add_argument("--threshold", type=float, help="Percentile cutoff in [0, 100]")
    parser.add_argument("--focus", type=int, help="Entity id to focus")
    parser.add_argument("--focus-flow", help="Flow id to focus, e.g. 1-2")
    parser.add_argument("--centre-flow", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--theme", choices=[t.value for t in Theme])
    parser.add_argument("--style", choices=[s.value for s in BidirectionalStyle])
    parser.add_argument("--width", type=float)
    parser.add_argument("--height", type=float)
    return parser


def _write_model(controller: InteractionController, output_dir: Path) -> Path:
    params = controller.params
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"render_model_{params.view_id}_{params.metric.value}_{params.flow_type.value}.json"
    with path.open("w", encoding="utf-8") as handle:
        json.dump(controller.model.to_dict(), handle, indent=2)
    return path


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    views = load_view_configurations()
    data_file = args.data or config.data_file
    if data_file is None or not Path(data_file).exists():
        raise RuntimeError(f"Payload file not found: {data_file}")
    payload = load_payload(data_file)

    rule_config = RenderingRuleConfig(theme=Theme(args.theme) if args.theme else config.theme)
    style = BidirectionalStyle(args.style) if args.style else config.bidirectional_style
    centre_flow = config.centre_flow if args.centre_flow is None else args.centre_flow

    with InteractionController(
        payload,
        views,
        rule_config=rule_config,
        layout_settings=LayoutSettings(margin=config.canvas_margin),
        width=args.width or config.canvas_width,
        height=args.height or config.canvas_height,
        view_id=args.view or config.default_view,
        threshold=args.threshold if args.threshold is not None else config.default_threshold,
        centre_flow_enabled=centre_flow,
        style=style,
    ) as controller:
        if args.metric:
            controller.select_metric(args.metric)
        if args.flow_type:
            controller.select_flow_type(args.flow_type)
        if args.focus is not None:
            controller.select_entity(args.focus)
        if args.focus_flow:
            controller.select_flow(args.focus_flow)

        if controller.last_error is not None:
            logging.error("Render model could not be rebuilt: %s", controller.last_error)
            return 1

        model = controller.model
        logging.info(
            "View %s metric=%s flow_type=%s threshold=%.1f: %d entities, %d flows, %d segments",
            model.params.view_id,
            model.params.metric.value,
            model.params.flow_type.value,
            model.params.threshold,
            len(model.entities),
            len(model.flows),
            len(model.segments),
        )
        path = _write_model(controller, args.output_dir or config.output_dir)
        logging.info("Render model written to %s", path)
    return 0
