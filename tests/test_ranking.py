"""Tests for percentile ranks and relative sizes."""

import numpy as np
import pytest

from bubbleflow_analysis.ranking import (
    interpolate,
    percentile_rank,
    percentile_ranks,
    relative_size_percent,
    relative_sizes,
)


def test_single_or_empty_set_ranks_100():
    assert percentile_rank([], 3) == 100
    assert percentile_rank([42], 42) == 100
    assert percentile_ranks([42]).tolist() == [100.0]


def test_middle_value_ranks_50():
    assert percentile_rank([10, 20, 30], 20) == 50
    assert percentile_rank([10, 20, 30], 10) == 0
    assert percentile_rank([10, 20, 30], 30) == 100


def test_vectorized_ranks_match_scalar():
    values = [7, 3, 11, 3, 9]
    expected = [percentile_rank(values, v) for v in values]
    assert percentile_ranks(values).tolist() == pytest.approx(expected)


def test_ties_share_a_rank():
    ranks = percentile_ranks([5, 5, 10])
    assert ranks[0] == ranks[1] == 0
    assert ranks[2] == 100


def test_ranks_ignore_input_order():
    values = np.array([30.0, 10.0, 20.0, 40.0])
    order = [2, 0, 3, 1]
    ranks = dict(zip(values, percentile_ranks(values)))
    shuffled = dict(zip(values[order], percentile_ranks(values[order])))
    assert ranks == shuffled


def test_empty_ranks():
    assert percentile_ranks([]).size == 0


def test_relative_size_zero_range_is_100():
    assert relative_size_percent(7, 7, 7) == 100
    (sizes,) = relative_sizes([3, 3, 3])
    assert sizes.tolist() == [100.0, 100.0, 100.0]
    assert not np.isnan(sizes).any()


def test_relative_size_linear():
    assert relative_size_percent(5, 0, 10) == 50
    assert relative_size_percent(0, 0, 10) == 0


def test_joint_scaling_shares_min_and_max():
    in_sizes, out_sizes = relative_sizes([40, 20], [10, 25])
    assert in_sizes.tolist() == pytest.approx([100.0, 1000 / 30])
    assert out_sizes.tolist() == pytest.approx([0.0, 50.0])


def test_interpolate_clamps():
    assert interpolate(-5, 2, 9) == 2
    assert interpolate(150, 2, 9) == 9
    assert interpolate(50, 2, 9) == pytest.approx(5.5)
