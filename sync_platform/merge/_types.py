# sync_platform/merge/_types.py
# PrefSync - types for the preference merge engine
from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Hashable


class MergePolicy(str, Enum):
    """How a preference category resolves concurrent writes."""

    FRESHNESS = "freshness"          # entity-keyed, newer timestamp wins per entity
    SETTINGS = "settings"            # document timestamp decides, content_preferences merged per entity
    ARRIVAL_ORDER = "arrival_order"  # last applied update wins, no timestamps consulted


@dataclass(frozen=True)
class EntitySpec:
    """Identity and freshness extractors for one entity-keyed list."""

    name: str
    key: Callable[[Mapping[str, Any]], Hashable]
    freshness: str
    limit: int | None = None


def media_key(item: Mapping[str, Any]) -> tuple[Any, Any]:
    return (item.get("media_id"), item.get("media_type"))


def query_key(item: Mapping[str, Any]) -> Any:
    return item.get("query")
