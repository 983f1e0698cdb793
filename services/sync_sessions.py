# services/sync_sessions.py
# PrefSync - sync session updates: load, merge, compare-and-swap write
from __future__ import annotations

import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from _logging import log as _root_log
from sync_platform.merge import SEARCH_HISTORY_LIMIT, merge_preferences
from sync_platform.session_store import SessionStore

log = _root_log.child("SYNC")

DEFAULT_TTL_SECONDS = 15 * 60
DEFAULT_CAS_ATTEMPTS = 5
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class SyncError(RuntimeError): ...
class InvalidUpdate(SyncError): ...
class SessionNotFound(SyncError): ...
class ConcurrentUpdateError(SyncError): ...


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SyncSession:
    sync_token: str
    preferences: Any = field(default_factory=dict)
    last_updated: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, sync_token: str, record: Mapping[str, Any]) -> "SyncSession":
        extra = {k: v for k, v in record.items() if k not in ("id", "preferences", "lastUpdated")}
        try:
            last = int(record.get("lastUpdated") or 0)
        except (TypeError, ValueError):
            last = 0
        return cls(
            sync_token=str(record.get("id") or sync_token),
            preferences=record.get("preferences"),
            last_updated=last,
            extra=extra,
        )

    def to_record(self) -> dict[str, Any]:
        out = dict(self.extra)
        out["id"] = self.sync_token
        out["preferences"] = self.preferences
        out["lastUpdated"] = self.last_updated
        return out

    @property
    def preference_count(self) -> int:
        return len(self.preferences) if isinstance(self.preferences, Mapping) else 0


@dataclass
class UpdateResult:
    last_updated: int
    preference_count: int
    attempts: int = 1

    def as_payload(self) -> dict[str, Any]:
        return {"success": True, "lastUpdated": self.last_updated, "preferenceCount": self.preference_count}


@dataclass
class SyncOptions:
    ttl_seconds: int = DEFAULT_TTL_SECONDS
    cas_max_attempts: int = DEFAULT_CAS_ATTEMPTS
    search_history_limit: int = SEARCH_HISTORY_LIMIT
    clear_on_empty: bool = False

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "SyncOptions":
        sc = (cfg.get("sync") or {}) if isinstance(cfg, Mapping) else {}
        return cls(
            ttl_seconds=int(sc.get("session_ttl_seconds") or DEFAULT_TTL_SECONDS),
            cas_max_attempts=max(1, int(sc.get("cas_max_attempts") or DEFAULT_CAS_ATTEMPTS)),
            search_history_limit=int(sc.get("search_history_limit") or SEARCH_HISTORY_LIMIT),
            clear_on_empty=bool(sc.get("clear_on_empty", False)),
        )


def _require_token(value: Any, name: str) -> str:
    if not value or not isinstance(value, str):
        raise InvalidUpdate(f"Missing required parameter: {name}")
    return value


def validate_update(body: Any) -> tuple[str, str, Mapping[str, Any]]:
    if not isinstance(body, Mapping):
        raise InvalidUpdate("Missing required parameters: syncToken, deviceToken, preferences")
    sync_token, device_token, prefs = body.get("syncToken"), body.get("deviceToken"), body.get("preferences")
    if not sync_token or not device_token or not prefs:
        raise InvalidUpdate("Missing required parameters: syncToken, deviceToken, preferences")
    _require_token(sync_token, "syncToken")
    _require_token(device_token, "deviceToken")
    if not isinstance(prefs, Mapping):
        raise InvalidUpdate("preferences must be a JSON object")
    return sync_token, device_token, prefs


def load_session(store: SessionStore, sync_token: str) -> SyncSession:
    record = store.get(sync_token)
    if record is None:
        raise SessionNotFound("Sync session not found")
    return SyncSession.from_record(sync_token, record)


def apply_update(
    store: SessionStore,
    sync_token: str,
    device_token: str,
    preferences: Mapping[str, Any],
    *,
    options: SyncOptions | None = None,
    now: Callable[[], int] = _now_ms,
) -> UpdateResult:
    """
    Merge `preferences` into the stored session and write it back.

    The write only lands if the stored value is still the one that was read;
    otherwise the session is re-read and the merge redone, up to
    `options.cas_max_attempts` times. Any device holding the sync token may
    write, the device token is only recorded in the log.
    """
    opts = options or SyncOptions()

    for attempt in range(1, opts.cas_max_attempts + 1):
        record, version = store.get_versioned(sync_token)
        if record is None or version is None:
            raise SessionNotFound("Sync session not found")

        session = SyncSession.from_record(sync_token, record)
        existing = session.preferences if session.preferences is not None else {}
        session.preferences = merge_preferences(
            existing,
            preferences,
            search_history_limit=opts.search_history_limit,
            clear_on_empty=opts.clear_on_empty,
        )
        session.last_updated = max(now(), session.last_updated)

        if store.put_if_version(sync_token, session.to_record(), version, opts.ttl_seconds):
            log.success(f"Updated sync session: {sync_token} by device: {device_token}",
                        extra={"attempt": attempt, "keys": session.preference_count})
            return UpdateResult(session.last_updated, session.preference_count, attempt)

        log.debug(f"session {sync_token} changed during merge; retrying", extra={"attempt": attempt})

    log.warn(f"gave up on session {sync_token} after {opts.cas_max_attempts} concurrent writes")
    raise ConcurrentUpdateError(f"session {sync_token} kept changing during update")


def _leading_int(value: Any) -> int | None:
    s = str(value if value is not None else "").strip()
    if not s:
        return 0
    m = _LEADING_INT.match(s)
    return int(m.group(1)) if m else None


def fetch_state(store: SessionStore, sync_token: str, last_known_update: Any = 0) -> dict[str, Any] | None:
    """Current preferences, or None when nothing is newer than `last_known_update`."""
    session = load_session(store, sync_token)
    known = _leading_int(last_known_update)
    # a marker with no leading digits never compares as older
    if known is None or session.last_updated <= known:
        return None
    return {"preferences": session.preferences, "lastUpdated": session.last_updated, "hasUpdates": True}


__all__ = [
    "SyncError",
    "InvalidUpdate",
    "SessionNotFound",
    "ConcurrentUpdateError",
    "SyncSession",
    "SyncOptions",
    "UpdateResult",
    "validate_update",
    "load_session",
    "apply_update",
    "fetch_state",
]
