"""
Circular bubble layout.

Entities are spaced evenly on one circle; bubble radii are interpolated by
percentile rank between bounds derived from the circle circumference. A
synthetic centre entity sits at the canvas centre.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .models import Entity, Point
from .ranking import percentile_ranks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutSettings:
    """Spacing and sizing constants for the circular layout."""

    margin: float = 120.0
    min_ring_gap: float = 30.0  # Between neighbouring outer rings
    min_bubble_to_ring_gap: float = 20.0
    min_bubble_radius_percentage: float = 0.2
    max_outer_ring_radius: float = 100.0
    centre_radius_fraction: float = 0.15
    label_offset: float = 20.0
    font_scale: float = 0.8
    min_font_size: float = 16.0
    centre_label: str = "Market"

    def __post_init__(self):
        if self.margin < 0 or self.min_ring_gap < 0 or self.min_bubble_to_ring_gap < 0:
            raise ValueError("Layout gaps and margin must not be negative.")
        if not 0.0 <= self.min_bubble_radius_percentage <= 1.0:
            raise ValueError("min_bubble_radius_percentage must be within [0, 1].")
        if self.max_outer_ring_radius <= 0:
            raise ValueError("max_outer_ring_radius must be positive.")


@dataclass(frozen=True)
class Layout:
    width: float
    height: float
    centre: Point
    position_circle_radius: float
    outer_ring_radius: float
    max_bubble_radius: float
    min_bubble_radius: float
    entities: Tuple[Entity, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.entities

    @property
    def centre_entity(self) -> Optional[Entity]:
        for entity in self.entities:
            if entity.is_centre:
                return entity
        return None

    def to_dict(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "centre": self.centre._asdict(),
            "position_circle_radius": self.position_circle_radius,
            "outer_ring_radius": self.outer_ring_radius,
            "max_bubble_radius": self.max_bubble_radius,
            "min_bubble_radius": self.min_bubble_radius,
        }


# ---------------------------------------------------------------------------
# Ring sizing
# ---------------------------------------------------------------------------

def position_circle_radius(width: float, height: float, margin: float) -> float:
    return max(min(width, height) / 2.0 - margin, 0.0)


def outer_ring_radius(circle_radius: float, n: int, settings: LayoutSettings) -> float:
    """Circumference share per entity, then capped by the configured maximum."""
    if n <= 0:
        return 0.0
    available = max(2.0 * math.pi * circle_radius - (n - 1) * settings.min_ring_gap, 0.0)
    return min(available / (2.0 * n), settings.max_outer_ring_radius)


def bubble_radius_bounds(ring_radius: float, settings: LayoutSettings) -> Tuple[float, float]:
    """Return (min, max) bubble radius inside an outer ring."""
    max_radius = max(ring_radius - settings.min_bubble_to_ring_gap, 0.0)
    return settings.min_bubble_radius_percentage * max_radius, max_radius


def _label_anchor(position: Point, angle: float, distance: float) -> Point:
    return Point(position.x + distance * math.cos(angle), position.y + distance * math.sin(angle))


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def compute_layout(
    entities: pd.DataFrame,
    width: float,
    height: float,
    settings: Optional[LayoutSettings] = None,
    centre_id: Optional[int] = None,
) -> Layout:
    """Place entities on a circle and size them by percentile rank.

    Args:
        entities: Frame with ``id``, ``label`` and ``absolute_value`` in
            display order.
        width: Canvas width.
        height: Canvas height.
        settings: Spacing constants, defaults when omitted.
        centre_id: Id for the synthetic centre entity. Defaults to one
            above the largest entity id.

    Returns:
        Layout with the ring metrics and one Entity per row plus the centre.
        An empty frame yields an empty layout.
    """
    settings = settings or LayoutSettings()
    centre = Point(width / 2.0, height / 2.0)
    circle_radius = position_circle_radius(width, height, settings.margin)
    n = len(entities)

    if n == 0:
        logger.debug("No entities to lay out; returning empty layout")
        return Layout(width, height, centre, circle_radius, 0.0, 0.0, 0.0)

    ring = outer_ring_radius(circle_radius, n, settings)
    min_radius, max_radius = bubble_radius_bounds(ring, settings)
    ranks = percentile_ranks(entities["absolute_value"].to_numpy(dtype=float))
    radii = min_radius + (max_radius - min_radius) * ranks / 100.0
    angles = 2.0 * np.pi * np.arange(n) / n
    xs = centre.x + circle_radius * np.cos(angles)
    ys = centre.y + circle_radius * np.sin(angles)

    placed = []
    for i, row in enumerate(entities.itertuples(index=False)):
        position = Point(float(xs[i]), float(ys[i]))
        radius = float(radii[i])
        angle = float(angles[i])
        placed.append(
            Entity(
                id=int(row.id),
                label=str(row.label),
                absolute_value=float(row.absolute_value),
                percentile_rank=float(ranks[i]),
                radius=radius,
                outer_ring_radius=ring,
                position=position,
                angle=angle,
                label_position=_label_anchor(position, angle, radius + settings.label_offset),
                font_size=max(settings.font_scale * radius, settings.min_font_size),
            )
        )

    if centre_id is None:
        centre_id = int(entities["id"].max()) + 1
    centre_radius = settings.centre_radius_fraction * circle_radius
    placed.append(
        Entity(
            id=int(centre_id),
            label=settings.centre_label,
            absolute_value=0.0,
            percentile_rank=0.0,
            radius=centre_radius,
            outer_ring_radius=centre_radius,
            position=centre,
            angle=0.0,
            label_position=centre,
            font_size=max(settings.font_scale * centre_radius, settings.min_font_size),
            is_centre=True,
        )
    )

    logger.debug(
        "Layout: n=%d circle_radius=%.1f outer_ring=%.1f bubble=[%.1f, %.1f]",
        n, circle_radius, ring, min_radius, max_radius,
    )
    return Layout(width, height, centre, circle_radius, ring, max_radius, min_radius, tuple(placed))
