"""Tests for the flow pipeline stages."""

import pandas as pd
import pytest

from conftest import flow

from bubbleflow_analysis.flows import (
    FLOW_COLUMNS,
    aggregate_to_centre,
    deduplicate_flows,
    empty_flow_frame,
    extract_flows,
    filter_by_focus,
    normalize_focus_direction,
    pipeline_frame,
    rank_and_filter,
    run_pipeline,
    scale_relative_sizes,
)
from bubbleflow_analysis.models import FlowType, InteractionParams, Metric, NetDirection, RenderType


def _frame(rows):
    """rows: (from, to, in, out) tuples."""
    frame = empty_flow_frame().reindex(range(len(rows)))
    frame["flow_id"] = [f"{r[0]}-{r[1]}" for r in rows]
    frame["from_id"] = [r[0] for r in rows]
    frame["to_id"] = [r[1] for r in rows]
    frame["in_flow"] = [float(r[2]) for r in rows]
    frame["out_flow"] = [float(r[3]) for r in rows]
    return frame[FLOW_COLUMNS]


def test_extract_reads_metric_and_labels(brands, three_entities):
    payload = {
        "entities": three_entities,
        "flows_brands": [
            flow(1, 2, in_abs=4, out_abs=9),
            {"from": 2, "to": 3, "churn": {"in": {"abs": 1, "perc": 0.25, "index": 104}, "out": {"abs": 2}}},
            flow(1, 3, in_abs=5, out_abs=5, metric="switching"),
        ],
    }
    df = extract_flows(payload, brands, Metric.CHURN, centre_id=4)
    assert list(df["from_id"]) == [1, 2]
    assert list(df["in_flow"]) == [4, 1]
    assert df.loc[1, "in_perc"] == 0.25
    assert df.loc[1, "in_index"] == 104
    assert pd.isna(df.loc[0, "in_perc"])


def test_extract_points_missing_target_at_centre(markets, triangle_payload):
    df = extract_flows(triangle_payload, markets, Metric.CHURN, centre_id=4)
    assert set(df["to_id"]) == {4}


def test_extract_empty_source(brands):
    df = extract_flows({"entities": [], "flows_brands": []}, brands, Metric.CHURN, centre_id=0)
    assert df.empty
    assert list(df.columns) == FLOW_COLUMNS


def test_deduplicate_keeps_first_seen_orientation():
    df = deduplicate_flows(_frame([(1, 2, 10, 20), (2, 1, 99, 1), (2, 3, 5, 5)]))
    assert len(df) == 2
    first = df.iloc[0]
    assert (first["from_id"], first["to_id"], first["in_flow"], first["out_flow"]) == (1, 2, 10, 20)


def test_normalize_swaps_records_pointing_at_focus():
    df = normalize_focus_direction(_frame([(2, 1, 7, 3), (1, 3, 4, 6)]), focus_id=1)
    swapped = df.iloc[0]
    assert (swapped["from_id"], swapped["to_id"]) == (1, 2)
    assert (swapped["in_flow"], swapped["out_flow"]) == (3, 7)
    untouched = df.iloc[1]
    assert (untouched["from_id"], untouched["in_flow"]) == (1, 4)


def test_normalize_keeps_payload_flow_id():
    df = normalize_focus_direction(_frame([(2, 1, 7, 3)]), focus_id=1)
    assert (df.loc[0, "from_id"], df.loc[0, "to_id"]) == (1, 2)
    assert df.loc[0, "flow_id"] == "2-1"


def test_normalize_without_focus_is_identity():
    frame = _frame([(2, 1, 7, 3)])
    assert normalize_focus_direction(frame, None) is frame


def test_filter_by_focus():
    df = _frame([(1, 2, 1, 1), (2, 3, 1, 1), (3, 1, 1, 1)])
    assert len(filter_by_focus(df, None)) == 3
    kept = filter_by_focus(df, 3)
    assert set(zip(kept["from_id"], kept["to_id"])) == {(2, 3), (3, 1)}


def test_aggregate_to_centre_matches_hand_totals():
    df = _frame([(1, 2, 10, 20), (2, 3, 5, 7), (3, 1, 4, 6)])
    agg = aggregate_to_centre(df, centre_id=4).set_index("from_id")
    assert set(agg["to_id"]) == {4}
    # A: from 1->2 (in 10, out 20) + mirrored 3->1 (in 6, out 4)
    assert (agg.loc[1, "in_flow"], agg.loc[1, "out_flow"]) == (16, 24)
    # B: mirrored 1->2 (in 20, out 10) + from 2->3 (in 5, out 7)
    assert (agg.loc[2, "in_flow"], agg.loc[2, "out_flow"]) == (25, 17)
    # C: mirrored 2->3 (in 7, out 5) + from 3->1 (in 4, out 6)
    assert (agg.loc[3, "in_flow"], agg.loc[3, "out_flow"]) == (11, 11)


def test_aggregate_excludes_centre_and_honours_focus():
    df = _frame([(1, 2, 10, 20), (2, 4, 5, 7)])
    agg = aggregate_to_centre(df, centre_id=4)
    assert 4 not in set(agg["from_id"])
    focused = aggregate_to_centre(df, centre_id=4, focus_id=2)
    assert list(focused["from_id"]) == [2]
    assert aggregate_to_centre(empty_flow_frame(), centre_id=4).empty


def test_threshold_is_rank_based():
    full = _frame([(1, 2, 0, 10), (1, 3, 0, 20), (1, 4, 0, 30), (1, 5, 0, 40)])
    kept = rank_and_filter(full, FlowType.OUT, threshold=50)
    assert sorted(kept["out_flow"]) == [30, 40]

    # Same values, smaller candidate set: 30 now ranks 0 and is dropped
    subset = _frame([(1, 4, 0, 30), (1, 5, 0, 40)])
    kept = rank_and_filter(subset, FlowType.OUT, threshold=50)
    assert list(kept["out_flow"]) == [40]


def test_rank_field_follows_flow_type():
    df = _frame([(1, 2, 50, 10), (1, 3, 5, 30)])
    by_in = rank_and_filter(df, FlowType.IN, 100)
    by_out = rank_and_filter(df, FlowType.OUT, 100)
    by_net = rank_and_filter(df, FlowType.NET, 100)
    assert list(by_in["to_id"]) == [2]
    assert list(by_out["to_id"]) == [3]
    # net: |10-50| = 40 beats |30-5| = 25
    assert list(by_net["to_id"]) == [2]
    assert list(by_net["signed_net_flow"]) == [-40]


def test_two_way_sizes_share_one_scale():
    ranked = rank_and_filter(_frame([(1, 2, 40, 10), (1, 3, 20, 25)]), FlowType.BOTH, 0)
    sized = scale_relative_sizes(ranked, FlowType.BOTH, RenderType.BIDIRECTIONAL)
    assert list(sized["in_size"]) == pytest.approx([100, 1000 / 30])
    assert list(sized["out_size"]) == pytest.approx([0, 50])


def test_single_line_sizes_use_rank_field():
    ranked = rank_and_filter(_frame([(1, 2, 40, 10), (1, 3, 20, 25)]), FlowType.OUT, 0)
    sized = scale_relative_sizes(ranked, FlowType.OUT, RenderType.UNIDIRECTIONAL)
    assert list(sized["size"]) == [0, 100]
    assert sized["in_size"].isna().all()


def test_empty_frame_passes_every_stage(brands):
    params = InteractionParams("brands", Metric.CHURN, FlowType.BOTH, threshold=50, focus_entity_id=1)
    df = pipeline_frame({"entities": [], "flows_brands": []}, params, brands, centre_id=0)
    assert df.empty
    assert run_pipeline({"entities": [], "flows_brands": []}, params, brands, centre_id=0) == ()


def test_run_pipeline_builds_records(brands, scenario_payload):
    params = InteractionParams("brands", Metric.CHURN, FlowType.BOTH)
    (record,) = run_pipeline(scenario_payload, params, brands, centre_id=4)
    assert record.id == "1-2"
    assert record.net_flow == 30
    assert record.net_direction is NetDirection.IN
    assert record.signed_net_flow == -30
    assert (record.in_size, record.out_size) == (100, 0)
    assert not record.is_centre_flow


def test_run_pipeline_with_focus_and_centre_flow(brands, triangle_payload):
    params = InteractionParams("brands", Metric.CHURN, FlowType.NET, focus_entity_id=2, centre_flow_enabled=True)
    (record,) = run_pipeline(triangle_payload, params, brands, centre_id=4)
    assert (record.from_id, record.to_id) == (2, 4)
    assert (record.absolute_in_flow, record.absolute_out_flow) == (25, 17)
    assert record.is_centre_flow


def test_centre_flow_ignored_when_view_does_not_support_it(markets, triangle_payload):
    params = InteractionParams("markets", Metric.CHURN, FlowType.NET, centre_flow_enabled=True)
    records = run_pipeline(triangle_payload, params, markets, centre_id=4)
    assert len(records) == 3
    assert not any(r.is_centre_flow for r in records)


def test_record_ids_do_not_depend_on_focus(brands, triangle_payload):
    plain = InteractionParams("brands", Metric.CHURN, FlowType.BOTH)
    focused = InteractionParams("brands", Metric.CHURN, FlowType.BOTH, focus_entity_id=1)
    unfocused_ids = {r.id for r in run_pipeline(triangle_payload, plain, brands, centre_id=4)}
    records = run_pipeline(triangle_payload, focused, brands, centre_id=4)
    assert {r.id for r in records} == {"1-2", "3-1"}
    assert {r.id for r in records} <= unfocused_ids
    swapped = next(r for r in records if r.id == "3-1")
    assert (swapped.from_id, swapped.to_id) == (1, 3)
    assert (swapped.absolute_in_flow, swapped.absolute_out_flow) == (6, 4)


def test_centre_flow_ids_name_entity_and_centre(brands, triangle_payload):
    params = InteractionParams("brands", Metric.CHURN, FlowType.NET, centre_flow_enabled=True)
    records = run_pipeline(triangle_payload, params, brands, centre_id=4)
    assert {r.id for r in records} == {"1-4", "2-4", "3-4"}
