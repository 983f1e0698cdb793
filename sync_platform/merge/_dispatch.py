# sync_platform/merge/_dispatch.py
# PrefSync - dispatch of a preference bundle to the per-category strategies
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

from ._strategies import (
    SEARCH_HISTORY_LIMIT,
    merge_game_progress,
    merge_search_history,
    merge_user_settings,
    merge_watchlist,
)
from ._types import MergePolicy

CATEGORY_POLICIES: dict[str, MergePolicy] = {
    "userSettings": MergePolicy.SETTINGS,
    "watchlist": MergePolicy.FRESHNESS,
    "searchHistory": MergePolicy.FRESHNESS,
    "gameProgress": MergePolicy.ARRIVAL_ORDER,
    "likedMovies": MergePolicy.ARRIVAL_ORDER,
    "dislikedMovies": MergePolicy.ARRIVAL_ORDER,
}


def policy_for(category: str) -> MergePolicy:
    return CATEGORY_POLICIES.get(category, MergePolicy.ARRIVAL_ORDER)


def _offered(value: Any, clear_on_empty: bool) -> bool:
    if value is None:
        return False
    if clear_on_empty:
        return True
    # falsy payloads ([], {}, 0, "", false) mean "nothing to sync" for this key
    return bool(value)


def merge_preferences(
    existing: Any,
    incoming: Mapping[str, Any],
    *,
    search_history_limit: int = SEARCH_HISTORY_LIMIT,
    clear_on_empty: bool = False,
) -> Any:
    """
    Merge an incoming preference bundle into the stored one.

    A non-object `existing` cannot be merged into and `incoming` is returned
    as is. Otherwise each offered key is routed to its category strategy;
    unknown keys, and known keys whose payload has an unexpected shape, are
    replaced by the incoming value.
    """
    if not isinstance(existing, Mapping):
        return incoming
    merged: dict[str, Any] = dict(existing)
    if not isinstance(incoming, Mapping):
        return merged

    strategies: dict[str, Callable[[Any, Any], Any]] = {
        "userSettings": merge_user_settings,
        "watchlist": _when(list, merge_watchlist),
        "searchHistory": _when(list, lambda cur, new: merge_search_history(cur, new, limit=search_history_limit)),
        "gameProgress": _when(Mapping, merge_game_progress),
    }

    for key, value in incoming.items():
        if not _offered(value, clear_on_empty):
            continue
        fn = strategies.get(key)
        if fn is None or not value:
            # empty values only get here with clear_on_empty and clear the category
            merged[key] = value
        else:
            merged[key] = fn(merged.get(key), value)
    return merged


def _when(kind: type, fn: Callable[[Any, Any], Any]) -> Callable[[Any, Any], Any]:
    def run(current: Any, value: Any) -> Any:
        if isinstance(value, kind):
            return fn(current, value)
        return value
    return run
