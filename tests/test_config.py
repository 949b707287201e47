"""Tests for environment configuration."""

import pytest

from bubbleflow_analysis import config as config_module
from bubbleflow_analysis.config import load_config
from bubbleflow_analysis.errors import ConfigurationError
from bubbleflow_analysis.models import BidirectionalStyle, Theme

ENV_VARS = [
    "DATA_FILE",
    "OUTPUT_DIR",
    "CANVAS_WIDTH",
    "CANVAS_HEIGHT",
    "CANVAS_MARGIN",
    "DEFAULT_VIEW",
    "DEFAULT_THRESHOLD",
    "CENTRE_FLOW",
    "THEME",
    "BIDIRECTIONAL_STYLE",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()
    assert config.canvas_width == config_module.DEFAULT_CANVAS_WIDTH
    assert config.default_view == "markets"
    assert config.theme is Theme.LIGHT
    assert config.bidirectional_style is BidirectionalStyle.SPLIT
    assert config.centre_flow is False
    assert config.data_file == config.root_dir / "data" / "sample_payload.json"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CANVAS_WIDTH", "640")
    monkeypatch.setenv("CENTRE_FLOW", "yes")
    monkeypatch.setenv("THEME", "Dark")
    monkeypatch.setenv("BIDIRECTIONAL_STYLE", "parallel")
    monkeypatch.setenv("DEFAULT_THRESHOLD", "40")
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path))
    config = load_config()
    assert config.canvas_width == 640
    assert config.centre_flow is True
    assert config.theme is Theme.DARK
    assert config.bidirectional_style is BidirectionalStyle.PARALLEL
    assert config.default_threshold == 40
    assert config.output_dir == tmp_path


@pytest.mark.parametrize(
    "name, value",
    [
        ("THEME", "sepia"),
        ("BIDIRECTIONAL_STYLE", "zigzag"),
        ("CANVAS_WIDTH", "wide"),
        ("CANVAS_HEIGHT", "0"),
        ("DEFAULT_THRESHOLD", "101"),
    ],
)
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        load_config()
