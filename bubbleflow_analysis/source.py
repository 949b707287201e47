"""
Raw payload loading and validation.

Payload shape:
    {
      "entities": [{"id": 1, "label": "Acme", "absoluteSize": 120}, ...],
      "flows_brands": [{"from": 1, "to": 2, "churn": {"in": {"abs": 4}, "out": {"abs": 9}}}, ...],
      "flows_markets": [{"from": 1, "churn": {...}}, ...]
    }

A flow entry without "to" points at the synthetic centre entity.
"""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import pandas as pd

from .errors import DataValidationError
from .views import ViewConfiguration

logger = logging.getLogger(__name__)

ENTITY_COLUMNS = ["id", "label", "absolute_value"]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not (isinstance(value, float) and math.isnan(value))
    return False


def _is_id(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def load_payload(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON payload from disk. Validation is a separate step."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    logger.info("Loaded payload from %s", path)
    return payload


def _validate_labels(block: Mapping, path: str, errors: List[str]) -> None:
    """Optional ``perc`` and ``index`` must be numbers when present."""
    for key in ("perc", "index"):
        value = block.get(key)
        if value is not None and not _is_number(value):
            errors.append(f"{path}.{key}: expected a number, got {value!r}")


def _validate_flow_entry(
    entry: Any,
    path: str,
    view: ViewConfiguration,
    entity_ids: set,
    centre: int,
    errors: List[str],
) -> None:
    if not isinstance(entry, Mapping):
        errors.append(f"{path}: expected an object")
        return

    for key, required in (("from", True), ("to", False)):
        if key not in entry:
            if required:
                errors.append(f"{path}.{key}: missing")
            continue
        value = entry[key]
        if not _is_id(value):
            errors.append(f"{path}.{key}: expected a numeric id, got {value!r}")
        elif int(value) not in entity_ids and int(value) != centre:
            errors.append(f"{path}.{key}: unknown entity id {int(value)}")

    for metric in view.supported_metrics:
        if metric.value not in entry:
            continue
        block = entry[metric.value]
        metric_path = f"{path}.{metric.value}"
        if not isinstance(block, Mapping):
            errors.append(f"{metric_path}: expected an object")
            continue
        for side in ("in", "out"):
            side_block = block.get(side)
            if not isinstance(side_block, Mapping):
                errors.append(f"{metric_path}.{side}: missing")
                continue
            if not _is_number(side_block.get("abs")):
                errors.append(f"{metric_path}.{side}.abs: expected a number, got {side_block.get('abs')!r}")
            _validate_labels(side_block, f"{metric_path}.{side}", errors)
        if "net" in block:
            if isinstance(block["net"], Mapping):
                _validate_labels(block["net"], f"{metric_path}.net", errors)
            else:
                errors.append(f"{metric_path}.net: expected an object")


def validate_payload(payload: Any, views: Mapping[str, ViewConfiguration]) -> None:
    """Check a payload against the entity schema and every view's flow list.

    Raises:
        DataValidationError: listing every violation found, each naming the
            offending field.
    """
    errors: List[str] = []
    if not isinstance(payload, Mapping):
        raise DataValidationError(["payload: expected a JSON object"])

    entities = payload.get("entities")
    entity_ids: set = set()
    if not isinstance(entities, list):
        errors.append("entities: missing or not an array")
    else:
        for idx, item in enumerate(entities):
            path = f"entities[{idx}]"
            if not isinstance(item, Mapping):
                errors.append(f"{path}: expected an object")
                continue
            if not _is_id(item.get("id")):
                errors.append(f"{path}.id: expected a numeric id, got {item.get('id')!r}")
            elif int(item["id"]) in entity_ids:
                errors.append(f"{path}.id: duplicate id {int(item['id'])}")
            else:
                entity_ids.add(int(item["id"]))
            if not isinstance(item.get("label"), str):
                errors.append(f"{path}.label: expected a string, got {item.get('label')!r}")
            if not _is_number(item.get("absoluteSize")):
                errors.append(f"{path}.absoluteSize: expected a number, got {item.get('absoluteSize')!r}")

    centre = max(entity_ids) + 1 if entity_ids else 0
    for view in views.values():
        key = view.data_source_key
        flows = payload.get(key)
        if not isinstance(flows, list):
            errors.append(f"{key}: missing or not an array")
            continue
        for idx, entry in enumerate(flows):
            _validate_flow_entry(entry, f"{key}[{idx}]", view, entity_ids, centre, errors)

    if errors:
        raise DataValidationError(errors)


def centre_id(payload: Mapping[str, Any]) -> int:
    """Id of the synthetic centre entity: one above the largest real id."""
    ids = [int(item["id"]) for item in payload.get("entities", [])]
    return max(ids) + 1 if ids else 0


def entity_frame(payload: Mapping[str, Any]) -> pd.DataFrame:
    """Entities in payload order as a DataFrame with normalized column names."""
    rows = [
        {"id": int(item["id"]), "label": item["label"], "absolute_value": float(item["absoluteSize"])}
        for item in payload.get("entities", [])
    ]
    if not rows:
        return pd.DataFrame(columns=ENTITY_COLUMNS)
    return pd.DataFrame(rows, columns=ENTITY_COLUMNS)

