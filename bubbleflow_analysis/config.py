from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import BidirectionalStyle, Theme, coerce_enum

# =============================================================================
# Default Configuration (can be overridden via .env)
# =============================================================================
DEFAULT_DATA_FILE = "data/sample_payload.json"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_CANVAS_WIDTH = 1200.0
DEFAULT_CANVAS_HEIGHT = 900.0
DEFAULT_CANVAS_MARGIN = 120.0  # Leaves room for bubble labels outside the circle
DEFAULT_VIEW = "markets"
DEFAULT_THRESHOLD = 0.0  # Percentile cutoff, 0 keeps every flow
DEFAULT_CENTRE_FLOW = False
DEFAULT_THEME = "light"
DEFAULT_BIDIRECTIONAL_STYLE = "split"  # "split" or "parallel"
DEFAULT_LOG_LEVEL = "INFO"


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("true", "1", "yes")


def _parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be numeric, got {raw!r}") from None


def _parse_enum_env(name: str, default: str, enum_cls):
    raw = os.getenv(name, default)
    try:
        return coerce_enum(enum_cls, raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name}: {exc}") from None


def _resolve_path(root_dir: Path, value: Optional[str]) -> Optional[Path]:
    if not value:
        return None
    path = Path(value)
    if not path.is_absolute():
        path = root_dir / path
    return path


@dataclass(frozen=True)
class Config:
    root_dir: Path
    data_file: Path
    output_dir: Path
    canvas_width: float
    canvas_height: float
    canvas_margin: float
    default_view: str
    default_threshold: float
    centre_flow: bool
    theme: Theme
    bidirectional_style: BidirectionalStyle
    log_level: str


def load_config() -> Config:
    root_dir = Path(__file__).resolve().parent
    project_root = root_dir.parent
    load_dotenv(project_root / ".env")

    canvas_width = _parse_float_env("CANVAS_WIDTH", DEFAULT_CANVAS_WIDTH)
    canvas_height = _parse_float_env("CANVAS_HEIGHT", DEFAULT_CANVAS_HEIGHT)
    if canvas_width <= 0 or canvas_height <= 0:
        raise ConfigurationError("CANVAS_WIDTH and CANVAS_HEIGHT must be positive.")
    canvas_margin = _parse_float_env("CANVAS_MARGIN", DEFAULT_CANVAS_MARGIN)
    if canvas_margin < 0:
        raise ConfigurationError("CANVAS_MARGIN must not be negative.")

    threshold = _parse_float_env("DEFAULT_THRESHOLD", DEFAULT_THRESHOLD)
    if not 0.0 <= threshold <= 100.0:
        raise ConfigurationError(f"DEFAULT_THRESHOLD must be within [0, 100], got {threshold}")

    return Config(
        root_dir=project_root,
        data_file=_resolve_path(project_root, os.getenv("DATA_FILE", DEFAULT_DATA_FILE)),
        output_dir=_resolve_path(project_root, os.getenv("OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
        canvas_width=canvas_width,
        canvas_height=canvas_height,
        canvas_margin=canvas_margin,
        default_view=os.getenv("DEFAULT_VIEW", DEFAULT_VIEW).strip().lower(),
        default_threshold=threshold,
        centre_flow=_parse_bool_env("CENTRE_FLOW", DEFAULT_CENTRE_FLOW),
        theme=_parse_enum_env("THEME", DEFAULT_THEME, Theme),
        bidirectional_style=_parse_enum_env("BIDIRECTIONAL_STYLE", DEFAULT_BIDIRECTIONAL_STYLE, BidirectionalStyle),
        log_level=os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )
