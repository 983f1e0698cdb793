# sync_platform/merge/__init__.py
# PrefSync - preference merge engine
from __future__ import annotations

from ._types import EntitySpec, MergePolicy, media_key, query_key
from ._entities import is_newer, merge_entities, parse_ts_ms
from ._strategies import (
    CONTENT_PREFERENCES,
    SEARCH_HISTORY_LIMIT,
    WATCHLIST,
    merge_content_preferences,
    merge_game_progress,
    merge_search_history,
    merge_user_settings,
    merge_watchlist,
    search_history_spec,
)
from ._dispatch import CATEGORY_POLICIES, merge_preferences, policy_for

__all__ = [
    "EntitySpec",
    "MergePolicy",
    "media_key",
    "query_key",
    "is_newer",
    "merge_entities",
    "parse_ts_ms",
    "CONTENT_PREFERENCES",
    "SEARCH_HISTORY_LIMIT",
    "WATCHLIST",
    "merge_content_preferences",
    "merge_game_progress",
    "merge_search_history",
    "merge_user_settings",
    "merge_watchlist",
    "search_history_spec",
    "CATEGORY_POLICIES",
    "merge_preferences",
    "policy_for",
]
