# PrefSync test scripts
from __future__ import annotations

import copy

import pytest

from sync_platform.merge import (
    CATEGORY_POLICIES,
    MergePolicy,
    merge_game_progress,
    merge_preferences,
    merge_user_settings,
    policy_for,
)


def _settings(updated_at: str, **extra) -> dict:
    base = {
        "tmdb_api_key": "k",
        "theme_preferences": {"mode": "dark"},
        "streaming_preferences": {},
        "voice_preferences": {},
        "content_preferences": [],
        "updated_at": updated_at,
    }
    base.update(extra)
    return base


def _pref(mid: int, pref: str, ts: str) -> dict:
    return {"media_id": mid, "media_type": "movie", "preference": pref, "timestamp": ts}


@pytest.mark.parametrize("existing", [None, "text", 7, [1, 2]])
def test_non_object_existing_returns_incoming(existing) -> None:
    incoming = {"likedMovies": [1]}
    assert merge_preferences(existing, incoming) is incoming


def test_unknown_key_passthrough() -> None:
    for existing in ({}, {"customField": "old"}, {"watchlist": []}):
        assert merge_preferences(existing, {"customField": "x"})["customField"] == "x"


def test_null_skip_keeps_existing_watchlist() -> None:
    wl = [{"media_id": "1", "media_type": "movie", "updated_at": "2024-01-01T00:00:00Z"}]
    merged = merge_preferences({"watchlist": wl}, {"watchlist": None})
    assert merged["watchlist"] == wl


def test_falsy_values_skip_by_default() -> None:
    existing = {"likedMovies": [1, 2], "score": 5, "watchlist": [{"media_id": "1", "media_type": "movie"}]}
    merged = merge_preferences(existing, {"likedMovies": [], "score": 0, "watchlist": []})
    assert merged == existing


def test_clear_on_empty_applies_empty_values_but_not_null() -> None:
    existing = {"likedMovies": [1, 2], "watchlist": [{"media_id": "1", "media_type": "movie"}], "gameProgress": {"a": 1}}
    merged = merge_preferences(
        existing,
        {"likedMovies": [], "watchlist": [], "gameProgress": None},
        clear_on_empty=True,
    )
    assert merged["likedMovies"] == []
    assert merged["watchlist"] == []
    assert merged["gameProgress"] == {"a": 1}


def test_merge_does_not_mutate_inputs() -> None:
    existing = {"watchlist": [{"media_id": "1", "media_type": "movie", "updated_at": "2024-01-01T00:00:00Z"}]}
    incoming = {"watchlist": [{"media_id": "1", "media_type": "movie", "updated_at": "2024-02-01T00:00:00Z"}]}
    snap_e, snap_i = copy.deepcopy(existing), copy.deepcopy(incoming)
    merge_preferences(existing, incoming)
    assert existing == snap_e
    assert incoming == snap_i


def test_user_settings_adopted_when_absent() -> None:
    incoming = _settings("2024-01-01T00:00:00Z")
    assert merge_preferences({}, {"userSettings": incoming})["userSettings"] == incoming


def test_user_settings_newer_wins_wholesale() -> None:
    existing = _settings("2024-01-01T00:00:00Z", content_preferences=[_pref(1, "like", "2024-01-01T00:00:00Z")])
    incoming = {"tmdb_api_key": "new", "updated_at": "2024-02-01T00:00:00Z"}

    merged = merge_user_settings(existing, incoming)
    assert merged == incoming
    assert "content_preferences" not in merged


def test_user_settings_older_keeps_existing_but_merges_content_preferences() -> None:
    existing = _settings(
        "2024-03-01T00:00:00Z",
        content_preferences=[_pref(1, "like", "2024-01-01T00:00:00Z"), _pref(2, "like", "2024-01-01T00:00:00Z")],
    )
    incoming = _settings(
        "2024-01-01T00:00:00Z",
        tmdb_api_key="stale",
        content_preferences=[_pref(2, "dislike", "2024-02-01T00:00:00Z"), _pref(3, "like", "2024-02-01T00:00:00Z")],
    )

    merged = merge_preferences({"userSettings": existing}, {"userSettings": incoming})["userSettings"]
    assert merged["tmdb_api_key"] == "k"
    assert merged["updated_at"] == "2024-03-01T00:00:00Z"
    assert [(p["media_id"], p["preference"]) for p in merged["content_preferences"]] == [
        (1, "like"),
        (2, "dislike"),
        (3, "like"),
    ]
    assert [p["preference"] for p in existing["content_preferences"]] == ["like", "like"]


def test_user_settings_missing_timestamps_are_oldest() -> None:
    existing = {"tmdb_api_key": "a"}
    incoming = {"tmdb_api_key": "b", "updated_at": "2000-01-01T00:00:00Z"}
    assert merge_user_settings(existing, incoming)["tmdb_api_key"] == "b"
    assert merge_user_settings(incoming, {"tmdb_api_key": "c"})["tmdb_api_key"] == "b"


def test_search_history_truncates_by_position_not_recency() -> None:
    # 50 stale entries fill the front of the list; fresh searches land after them and are cut.
    existing = [{"query": f"old-{i}", "searched_at": "2020-01-01T00:00:00Z"} for i in range(50)]
    incoming = [{"query": f"new-{i}", "searched_at": "2024-01-01T00:00:00Z"} for i in range(5)]

    merged = merge_preferences({"searchHistory": existing}, {"searchHistory": incoming})["searchHistory"]
    assert len(merged) == 50
    assert [x["query"] for x in merged] == [f"old-{i}" for i in range(50)]


@pytest.mark.parametrize("n_existing,n_incoming", [(0, 0), (0, 120), (49, 1), (50, 50), (10, 200)])
def test_search_history_never_exceeds_limit(n_existing: int, n_incoming: int) -> None:
    existing = [{"query": f"e{i}", "searched_at": i} for i in range(n_existing)]
    incoming = [{"query": f"i{i}", "searched_at": i} for i in range(n_incoming)]
    merged = merge_preferences({"searchHistory": existing}, {"searchHistory": incoming or None})
    assert len(merged.get("searchHistory", [])) <= 50


def test_search_history_limit_is_configurable() -> None:
    incoming = [{"query": f"q{i}", "searched_at": i} for i in range(10)]
    merged = merge_preferences({}, {"searchHistory": incoming}, search_history_limit=3)
    assert [x["query"] for x in merged["searchHistory"]] == ["q0", "q1", "q2"]


def test_game_progress_overlays_without_timestamps() -> None:
    existing = {"trivia": {"level": 9, "updated_at": "2025-01-01T00:00:00Z"}, "boxoffice": {"score": 3}}
    incoming = {"trivia": {"level": 1, "updated_at": "2000-01-01T00:00:00Z"}}

    merged = merge_preferences({"gameProgress": existing}, {"gameProgress": incoming})["gameProgress"]
    assert merged == {"trivia": {"level": 1, "updated_at": "2000-01-01T00:00:00Z"}, "boxoffice": {"score": 3}}
    assert merge_game_progress(None, {"x": 1}) == {"x": 1}


def test_unexpected_shapes_fall_back_to_replace() -> None:
    existing = {"watchlist": [{"media_id": "1", "media_type": "movie"}], "gameProgress": {"a": 1}}
    merged = merge_preferences(existing, {"watchlist": "reset", "gameProgress": ["x"]})
    assert merged["watchlist"] == "reset"
    assert merged["gameProgress"] == ["x"]


def test_idempotent_re_merge() -> None:
    existing = {
        "userSettings": _settings("2024-05-01T00:00:00Z", content_preferences=[_pref(1, "like", "2024-01-01T00:00:00Z")]),
        "watchlist": [{"media_id": "1", "media_type": "movie", "updated_at": "2024-01-01T00:00:00Z"}],
        "searchHistory": [{"query": "a", "searched_at": "2024-01-01T00:00:00Z"}],
        "gameProgress": {"g": 1},
    }
    incoming = {
        "userSettings": _settings("2024-01-01T00:00:00Z", content_preferences=[_pref(2, "dislike", "2024-02-01T00:00:00Z")]),
        "watchlist": [
            {"media_id": "1", "media_type": "movie", "updated_at": "2024-02-01T00:00:00Z"},
            {"media_id": "2", "media_type": "tv", "updated_at": "2024-02-01T00:00:00Z"},
        ],
        "searchHistory": [{"query": "b", "searched_at": "2024-02-01T00:00:00Z"}],
        "gameProgress": {"g": 2},
        "likedMovies": [5],
    }

    once = merge_preferences(existing, incoming)
    twice = merge_preferences(once, incoming)
    assert once == twice
    assert len(twice["watchlist"]) == 2
    assert len(twice["userSettings"]["content_preferences"]) == 2


def test_every_known_category_has_a_policy_tag() -> None:
    assert CATEGORY_POLICIES["userSettings"] is MergePolicy.SETTINGS
    assert CATEGORY_POLICIES["watchlist"] is MergePolicy.FRESHNESS
    assert CATEGORY_POLICIES["searchHistory"] is MergePolicy.FRESHNESS
    assert CATEGORY_POLICIES["gameProgress"] is MergePolicy.ARRIVAL_ORDER
    assert policy_for("customField") is MergePolicy.ARRIVAL_ORDER
