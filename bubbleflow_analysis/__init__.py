"""Bubble flow analysis: radial layout, flow ranking and render-model assembly."""

__version__ = "0.1.0"
