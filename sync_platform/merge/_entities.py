# sync_platform/merge/_entities.py
# PrefSync - entity-keyed, timestamp-compared list merge
from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Hashable

from ._types import EntitySpec


def parse_ts_ms(v: Any) -> float:
    """Timestamp as epoch milliseconds; missing or unparseable values are 0."""
    if v is None or isinstance(v, bool):
        return 0.0
    try:
        if isinstance(v, (int, float)):
            return float(v)
        s = str(v).strip()
        if not s:
            return 0.0
        if s.lstrip("-").isdigit():
            return float(s)
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp() * 1000.0
    except (ValueError, OverflowError):
        return 0.0


def is_newer(incoming: Mapping[str, Any], current: Mapping[str, Any], field: str) -> bool:
    return parse_ts_ms(incoming.get(field)) > parse_ts_ms(current.get(field))


def merge_entities(existing: Any, incoming: Sequence[Any], spec: EntitySpec) -> list[Any]:
    """
    Merge `incoming` into a copy of `existing`.

    An incoming entity replaces the stored one with the same key in place when
    its freshness field is strictly newer, and is appended when the key is new.
    Stale or equal entities are ignored. `spec.limit` keeps the first N entries
    of the merged list by position.
    """
    merged: list[Any] = list(existing) if isinstance(existing, list) else []
    pos: dict[Hashable, int] = {}
    for i, item in enumerate(merged):
        if isinstance(item, Mapping):
            k = _key(spec, item)
            if k is not None:
                pos.setdefault(k, i)

    for item in incoming:
        if not isinstance(item, Mapping):
            continue
        k = _key(spec, item)
        if k is None:
            continue
        at = pos.get(k)
        if at is None:
            pos[k] = len(merged)
            merged.append(item)
        elif is_newer(item, merged[at], spec.freshness):
            merged[at] = item

    if spec.limit is not None:
        return merged[: spec.limit]
    return merged


def _key(spec: EntitySpec, item: Mapping[str, Any]) -> Hashable | None:
    try:
        k = spec.key(item)
        hash(k)
        return k
    except TypeError:
        return None
