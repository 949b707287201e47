#!/usr/bin/env python
"""
Bubble Flow Analysis - Entry Point

Resolves a radial bubble flow diagram (entity positions, flow arcs and their
styles) from a JSON payload and writes the render model to the output
directory.

Usage:
    python main.py --view brands --flow-type both --threshold 25
"""
from __future__ import annotations

import sys

from bubbleflow_analysis.orchestrator import main

if __name__ == "__main__":
    sys.exit(main() or 0)
