"""
Flow pipeline: extract -> deduplicate -> focus-normalize -> focus-filter ->
centre-aggregate -> rank/threshold -> relative-size scaling.

Every stage takes and returns a DataFrame with FLOW_COLUMNS (plus derived
columns after ranking) and can be called on its own. An empty frame passes
through every stage unchanged.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .models import FlowRecord, FlowType, InteractionParams, Metric, NetDirection, RenderType
from .ranking import percentile_ranks, relative_sizes
from .views import ViewConfiguration, render_type_for

logger = logging.getLogger(__name__)

# flow_id keeps the payload orientation so ids survive focus re-orientation
FLOW_COLUMNS = [
    "flow_id",
    "from_id",
    "to_id",
    "in_flow",
    "out_flow",
    "in_perc",
    "out_perc",
    "net_perc",
    "in_index",
    "out_index",
    "net_index",
]

# Column pairs exchanged when a record is re-oriented
_SWAP_PAIRS = [
    ("from_id", "to_id"),
    ("in_flow", "out_flow"),
    ("in_perc", "out_perc"),
    ("in_index", "out_index"),
]

RANK_FIELDS = {
    FlowType.IN: "in_flow",
    FlowType.OUT: "out_flow",
    FlowType.NET: "net_flow",
    FlowType.BOTH: "net_flow",
}


def empty_flow_frame() -> pd.DataFrame:
    frame = pd.DataFrame({col: pd.Series(dtype=float) for col in FLOW_COLUMNS})
    frame["flow_id"] = pd.Series(dtype=object)
    return frame.astype({"from_id": "int64", "to_id": "int64"})


def flow_id(from_id: int, to_id: int) -> str:
    return f"{int(from_id)}-{int(to_id)}"


def rank_field(flow_type: FlowType) -> str:
    try:
        return RANK_FIELDS[flow_type]
    except KeyError:
        raise ValueError(f"Unhandled flow type: {flow_type!r}") from None


def _optional_number(block: Any, key: str) -> float:
    if isinstance(block, Mapping):
        value = block.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return np.nan


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

def extract_flows(
    payload: Mapping[str, Any],
    view: ViewConfiguration,
    metric: Metric,
    centre_id: int,
) -> pd.DataFrame:
    """Pull the active metric's in/out values from the view's flow list."""
    rows = []
    skipped = 0
    for entry in payload.get(view.data_source_key, []):
        block = entry.get(metric.value)
        if not isinstance(block, Mapping):
            skipped += 1
            continue
        from_id = int(entry["from"])
        to_id = int(entry["to"]) if "to" in entry else int(centre_id)
        rows.append({
            "flow_id": flow_id(from_id, to_id),
            "from_id": from_id,
            "to_id": to_id,
            "in_flow": float(block["in"]["abs"]),
            "out_flow": float(block["out"]["abs"]),
            "in_perc": _optional_number(block["in"], "perc"),
            "out_perc": _optional_number(block["out"], "perc"),
            "net_perc": _optional_number(block.get("net"), "perc"),
            "in_index": _optional_number(block["in"], "index"),
            "out_index": _optional_number(block["out"], "index"),
            "net_index": _optional_number(block.get("net"), "index"),
        })
    if skipped:
        logger.debug("Skipped %d %s record(s) without metric '%s'", skipped, view.data_source_key, metric.value)
    if not rows:
        return empty_flow_frame()
    return pd.DataFrame(rows, columns=FLOW_COLUMNS)


def deduplicate_flows(df: pd.DataFrame) -> pd.DataFrame:
    """Collapse (a, b) and (b, a) into one record; the first one seen wins."""
    if df.empty:
        return df
    lo = np.minimum(df["from_id"], df["to_id"]).astype(str)
    hi = np.maximum(df["from_id"], df["to_id"]).astype(str)
    pair_key = lo + "," + hi
    deduped = df.loc[~pair_key.duplicated(keep="first")].reset_index(drop=True)
    dropped = len(df) - len(deduped)
    if dropped:
        logger.debug("Dropped %d duplicate flow record(s)", dropped)
    return deduped


def normalize_focus_direction(df: pd.DataFrame, focus_id: Optional[int]) -> pd.DataFrame:
    """Orient records pointing at the focus entity so they start from it.

    After this step "out" always means away from the focused entity.
    """
    if focus_id is None or df.empty:
        return df
    mask = (df["to_id"] == focus_id) & (df["from_id"] != focus_id)
    if not mask.any():
        return df
    out = df.copy()
    for left, right in _SWAP_PAIRS:
        out.loc[mask, [left, right]] = df.loc[mask, [right, left]].to_numpy()
    return out


def filter_by_focus(df: pd.DataFrame, focus_id: Optional[int]) -> pd.DataFrame:
    if focus_id is None or df.empty:
        return df
    mask = (df["from_id"] == focus_id) | (df["to_id"] == focus_id)
    return df.loc[mask].reset_index(drop=True)


def aggregate_to_centre(df: pd.DataFrame, centre_id: int, focus_id: Optional[int] = None) -> pd.DataFrame:
    """Replace pairwise records with one per-entity total pointing at the centre.

    The from-side contributes in->in and out->out; the to-side contributes the
    mirrored values. Labels (perc/index) do not survive aggregation.
    """
    if df.empty:
        return empty_flow_frame()
    from_side = pd.DataFrame({"entity_id": df["from_id"], "in_flow": df["in_flow"], "out_flow": df["out_flow"]})
    to_side = pd.DataFrame({"entity_id": df["to_id"], "in_flow": df["out_flow"], "out_flow": df["in_flow"]})
    totals = (
        pd.concat([from_side, to_side], ignore_index=True)
        .groupby("entity_id", sort=False)[["in_flow", "out_flow"]]
        .sum()
        .reset_index()
    )
    totals = totals.loc[totals["entity_id"] != centre_id]
    if focus_id is not None:
        totals = totals.loc[totals["entity_id"] == focus_id]
    if totals.empty:
        return empty_flow_frame()

    result = empty_flow_frame().reindex(range(len(totals)))
    result["from_id"] = totals["entity_id"].to_numpy(dtype="int64")
    result["to_id"] = int(centre_id)
    result["flow_id"] = [flow_id(entity, centre_id) for entity in result["from_id"]]
    result["in_flow"] = totals["in_flow"].to_numpy(dtype=float)
    result["out_flow"] = totals["out_flow"].to_numpy(dtype=float)
    return result[FLOW_COLUMNS]


def add_net_columns(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out["signed_net_flow"] = out["out_flow"] - out["in_flow"]
    out["net_flow"] = out["signed_net_flow"].abs()
    return out


def rank_and_filter(df: pd.DataFrame, flow_type: FlowType, threshold: float) -> pd.DataFrame:
    """Rank the flow-type field across the whole set, then apply the percentile cutoff."""
    field = rank_field(flow_type)
    ranked = add_net_columns(df)
    ranked["percentile_rank"] = percentile_ranks(ranked[field].to_numpy(dtype=float))
    kept = ranked.loc[ranked["percentile_rank"] >= threshold].reset_index(drop=True)
    if len(kept) < len(ranked):
        logger.debug("Threshold %.1f kept %d of %d flow(s)", threshold, len(kept), len(ranked))
    return kept


def scale_relative_sizes(df: pd.DataFrame, flow_type: FlowType, render_type: RenderType) -> pd.DataFrame:
    """Scale the thickness fields to 0-100.

    Two-way rendering scales in and out jointly so both segments share one
    scale; a single line scales the flow type's own field.
    """
    out = df.copy()
    if render_type is RenderType.BIDIRECTIONAL:
        in_size, out_size = relative_sizes(out["in_flow"], out["out_flow"])
        out["in_size"] = in_size
        out["out_size"] = out_size
        out["size"] = np.maximum(in_size, out_size)
    elif render_type is RenderType.UNIDIRECTIONAL:
        (size,) = relative_sizes(out[rank_field(flow_type)])
        out["in_size"] = np.nan
        out["out_size"] = np.nan
        out["size"] = size
    else:
        raise ValueError(f"Unhandled render type: {render_type!r}")
    return out


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------

def pipeline_frame(
    payload: Mapping[str, Any],
    params: InteractionParams,
    view: ViewConfiguration,
    centre_id: int,
) -> pd.DataFrame:
    """Run every stage and return the final frame."""
    focus = params.focus_entity_id
    df = extract_flows(payload, view, params.metric, centre_id)
    df = deduplicate_flows(df)
    df = normalize_focus_direction(df, focus)
    df = filter_by_focus(df, focus)
    is_centre_flow = params.centre_flow_enabled and view.supports_centre_flow
    if is_centre_flow:
        df = aggregate_to_centre(df, centre_id, focus)
    df = rank_and_filter(df, params.flow_type, params.threshold)
    df = scale_relative_sizes(df, params.flow_type, render_type_for(view, params.flow_type))
    df["is_centre_flow"] = is_centre_flow
    return df


def _optional(value: Any) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def to_flow_records(df: pd.DataFrame) -> Tuple[FlowRecord, ...]:
    records = []
    for row in df.itertuples(index=False):
        in_flow = float(row.in_flow)
        out_flow = float(row.out_flow)
        records.append(
            FlowRecord(
                id=str(row.flow_id),
                from_id=int(row.from_id),
                to_id=int(row.to_id),
                absolute_in_flow=in_flow,
                absolute_out_flow=out_flow,
                net_flow=float(row.net_flow),
                net_direction=NetDirection.OUT if out_flow >= in_flow else NetDirection.IN,
                signed_net_flow=float(row.signed_net_flow),
                percentile_rank=float(row.percentile_rank),
                size=float(row.size),
                in_size=_optional(row.in_size),
                out_size=_optional(row.out_size),
                in_perc=_optional(row.in_perc),
                out_perc=_optional(row.out_perc),
                net_perc=_optional(row.net_perc),
                in_index=_optional(row.in_index),
                out_index=_optional(row.out_index),
                net_index=_optional(row.net_index),
                is_centre_flow=bool(row.is_centre_flow),
            )
        )
    return tuple(records)


def run_pipeline(
    payload: Mapping[str, Any],
    params: InteractionParams,
    view: ViewConfiguration,
    centre_id: int,
) -> Tuple[FlowRecord, ...]:
    records = to_flow_records(pipeline_frame(payload, params, view, centre_id))
    logger.debug(
        "Pipeline %s/%s/%s produced %d flow(s)",
        view.id, params.metric.value, params.flow_type.value, len(records),
    )
    return records
