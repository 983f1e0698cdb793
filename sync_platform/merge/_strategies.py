# sync_platform/merge/_strategies.py
# PrefSync - per-category merge strategies
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ._entities import merge_entities, parse_ts_ms
from ._types import EntitySpec, media_key, query_key

SEARCH_HISTORY_LIMIT = 50

CONTENT_PREFERENCES = EntitySpec("content_preferences", media_key, "timestamp")
WATCHLIST = EntitySpec("watchlist", media_key, "updated_at")


def search_history_spec(limit: int = SEARCH_HISTORY_LIMIT) -> EntitySpec:
    return EntitySpec("searchHistory", query_key, "searched_at", limit=limit)


def merge_content_preferences(existing: Any, incoming: list[Any]) -> list[Any]:
    return merge_entities(existing, incoming, CONTENT_PREFERENCES)


def merge_user_settings(existing: Any, incoming: Any) -> Any:
    if not isinstance(existing, Mapping):
        return incoming
    if not isinstance(incoming, Mapping):
        return existing

    # strictly newer settings document replaces the stored one wholesale
    if parse_ts_ms(incoming.get("updated_at")) > parse_ts_ms(existing.get("updated_at")):
        return incoming

    merged = dict(existing)
    prefs = incoming.get("content_preferences")
    if prefs and isinstance(prefs, list):
        merged["content_preferences"] = merge_content_preferences(
            existing.get("content_preferences") or [],
            prefs,
        )
    return merged


def merge_watchlist(existing: Any, incoming: list[Any]) -> list[Any]:
    return merge_entities(existing, incoming, WATCHLIST)


def merge_search_history(existing: Any, incoming: list[Any], *, limit: int = SEARCH_HISTORY_LIMIT) -> list[Any]:
    # Positional cut after merging: the first `limit` entries survive, not the most recent ones.
    return merge_entities(existing, incoming, search_history_spec(limit))


def merge_game_progress(existing: Any, incoming: Mapping[str, Any]) -> dict[str, Any]:
    # Arrival order wins per game type; progress values carry no timestamp we compare.
    merged = dict(existing) if isinstance(existing, Mapping) else {}
    for game_type, progress in incoming.items():
        merged[game_type] = progress
    return merged
