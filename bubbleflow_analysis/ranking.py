"""
Percentile-rank and relative-size scaling helpers.

Ranks are always computed against the whole active set passed in, so values
rendered together stay comparable. Both helpers are order-independent and
give tied values identical results.
"""
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np


def percentile_rank(values: Sequence[float], value: float) -> float:
    """Percentile rank of ``value`` within ``values``.

    rank = count of values strictly below ``value``; result is
    ``rank / (n - 1) * 100``, or 100 when there is at most one value.
    """
    arr = np.asarray(values, dtype=float)
    n = arr.size
    if n <= 1:
        return 100.0
    rank = int(np.count_nonzero(arr < value))
    return rank / (n - 1) * 100.0


def percentile_ranks(values: Sequence[float]) -> np.ndarray:
    """Vectorized percentile_rank of every element against the full set."""
    arr = np.asarray(values, dtype=float)
    n = arr.size
    if n == 0:
        return np.empty(0, dtype=float)
    if n == 1:
        return np.full(1, 100.0)
    # searchsorted(left) on the sorted copy counts strictly-smaller values
    below = np.searchsorted(np.sort(arr), arr, side="left")
    return below / (n - 1) * 100.0


def relative_size_percent(value: float, min_value: float, max_value: float) -> float:
    """Linear min-max normalization to 0-100. A zero range maps to 100."""
    if max_value == min_value:
        return 100.0
    return (value - min_value) / (max_value - min_value) * 100.0


def relative_sizes(*columns: Sequence[float]) -> Tuple[np.ndarray, ...]:
    """Scale several value columns on one shared min/max.

    Used for two-way flows so the in and out values land on the same scale.
    """
    arrays = [np.asarray(col, dtype=float) for col in columns]
    non_empty = [arr for arr in arrays if arr.size]
    if not non_empty:
        return tuple(arrays)
    joined = np.concatenate(non_empty)
    lo = float(joined.min())
    hi = float(joined.max())
    if hi == lo:
        return tuple(np.full(arr.shape, 100.0) for arr in arrays)
    return tuple((arr - lo) / (hi - lo) * 100.0 for arr in arrays)


def interpolate(rank: float, low: float, high: float) -> float:
    """Map a 0-100 rank onto [low, high], clamping the rank first."""
    clamped = max(0.0, min(100.0, float(rank)))
    return low + (high - low) * clamped / 100.0
