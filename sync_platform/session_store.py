# sync_platform/session_store.py
# PrefSync - TTL-bounded storage of one sync session record per sync token
from __future__ import annotations

import json
import threading
import time
from collections.abc import Mapping
from typing import Any, Callable, Protocol

import redis

from _logging import log as _root_log

log = _root_log.child("STORE")

DEFAULT_KEY_PREFIX = "sync_session_"

# KEYS[1] = session key, ARGV = expected raw value, new raw value, ttl seconds.
# Returns 1 when written, 0 when the stored value changed or expired meanwhile.
LUA_CAS_SCRIPT = """
local cur = redis.call('GET', KEYS[1])
if (not cur) or cur ~= ARGV[1] then
    return 0
end
redis.call('SET', KEYS[1], ARGV[2], 'EX', tonumber(ARGV[3]))
return 1
"""


class StoreError(RuntimeError):
    """Backing store unavailable or holding an unreadable value."""


class SessionStore(Protocol):
    def get(self, sync_token: str) -> dict[str, Any] | None: ...
    def put(self, sync_token: str, session: Mapping[str, Any], ttl_seconds: int) -> None: ...
    def get_versioned(self, sync_token: str) -> tuple[dict[str, Any] | None, str | None]: ...
    def put_if_version(
        self,
        sync_token: str,
        session: Mapping[str, Any],
        version: str,
        ttl_seconds: int,
    ) -> bool: ...


def encode_session(session: Mapping[str, Any]) -> str:
    return json.dumps(dict(session), ensure_ascii=False, separators=(",", ":"))


def decode_session(raw: Any, *, key: str = "") -> dict[str, Any]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StoreError(f"unreadable session value at {key or '?'}: {e}") from e
    if not isinstance(data, dict):
        raise StoreError(f"session value at {key or '?'} is not a JSON object")
    return data


def _ttl(ttl_seconds: int) -> int:
    # Stores count TTL in whole seconds; zero or negative would never be readable.
    return max(1, int(ttl_seconds))


class MemorySessionStore:
    """Process-local store with the same TTL and CAS semantics as the Redis one."""

    def __init__(
        self,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.key_prefix = key_prefix
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def key(self, sync_token: str) -> str:
        return f"{self.key_prefix}{sync_token}"

    def _sweep(self) -> None:
        now = self._clock()
        for k in [k for k, (_, expires_at) in self._data.items() if now >= expires_at]:
            del self._data[k]

    def _live_raw(self, k: str) -> str | None:
        hit = self._data.get(k)
        if hit is None:
            return None
        raw, expires_at = hit
        if self._clock() >= expires_at:
            self._data.pop(k, None)
            return None
        return raw

    def get(self, sync_token: str) -> dict[str, Any] | None:
        return self.get_versioned(sync_token)[0]

    def get_versioned(self, sync_token: str) -> tuple[dict[str, Any] | None, str | None]:
        k = self.key(sync_token)
        with self._lock:
            raw = self._live_raw(k)
        if raw is None:
            return None, None
        return decode_session(raw, key=k), raw

    def put(self, sync_token: str, session: Mapping[str, Any], ttl_seconds: int) -> None:
        k = self.key(sync_token)
        raw = encode_session(session)
        with self._lock:
            self._sweep()
            self._data[k] = (raw, self._clock() + _ttl(ttl_seconds))

    def put_if_version(
        self,
        sync_token: str,
        session: Mapping[str, Any],
        version: str,
        ttl_seconds: int,
    ) -> bool:
        k = self.key(sync_token)
        raw = encode_session(session)
        with self._lock:
            self._sweep()
            if self._live_raw(k) != version:
                return False
            self._data[k] = (raw, self._clock() + _ttl(ttl_seconds))
            return True

    def evict(self, sync_token: str) -> bool:
        with self._lock:
            return self._data.pop(self.key(sync_token), None) is not None

    def ttl(self, sync_token: str) -> float | None:
        with self._lock:
            hit = self._data.get(self.key(sync_token))
            if hit is None:
                return None
            return max(0.0, hit[1] - self._clock())


class RedisSessionStore:
    """Remote key-value store: JSON strings under `<prefix><syncToken>` with SET EX."""

    def __init__(self, client: Any, *, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self.client = client
        self.key_prefix = key_prefix
        self._cas = client.register_script(LUA_CAS_SCRIPT)

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = DEFAULT_KEY_PREFIX, timeout: float = 5.0) -> "RedisSessionStore":
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        return cls(client, key_prefix=key_prefix)

    def key(self, sync_token: str) -> str:
        return f"{self.key_prefix}{sync_token}"

    def get(self, sync_token: str) -> dict[str, Any] | None:
        return self.get_versioned(sync_token)[0]

    def get_versioned(self, sync_token: str) -> tuple[dict[str, Any] | None, str | None]:
        k = self.key(sync_token)
        try:
            raw = self.client.get(k)
        except redis.RedisError as e:
            log.error(f"GET {k} failed: {e}")
            raise StoreError(f"session store unavailable: {e}") from e
        if raw is None:
            return None, None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return decode_session(raw, key=k), raw

    def put(self, sync_token: str, session: Mapping[str, Any], ttl_seconds: int) -> None:
        k = self.key(sync_token)
        try:
            self.client.set(k, encode_session(session), ex=_ttl(ttl_seconds))
        except redis.RedisError as e:
            log.error(f"SET {k} failed: {e}")
            raise StoreError(f"session store unavailable: {e}") from e

    def put_if_version(
        self,
        sync_token: str,
        session: Mapping[str, Any],
        version: str,
        ttl_seconds: int,
    ) -> bool:
        k = self.key(sync_token)
        try:
            res = self._cas(keys=[k], args=[version, encode_session(session), _ttl(ttl_seconds)])
        except redis.RedisError as e:
            log.error(f"CAS {k} failed: {e}")
            raise StoreError(f"session store unavailable: {e}") from e
        return int(res or 0) == 1


def build_store(cfg: Mapping[str, Any]) -> SessionStore:
    sc = (cfg.get("store") or {}) if isinstance(cfg, Mapping) else {}
    backend = str(sc.get("backend") or "memory").lower()
    prefix = str(sc.get("key_prefix") or DEFAULT_KEY_PREFIX)
    if backend == "redis":
        url = str(sc.get("redis_url") or "redis://localhost:6379/0")
        log.info(f"using redis session store prefix={prefix}")
        return RedisSessionStore.from_url(url, key_prefix=prefix, timeout=float(sc.get("timeout") or 5.0))
    log.info("using in-memory session store (single process only)")
    return MemorySessionStore(key_prefix=prefix)


__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "StoreError",
    "build_store",
    "encode_session",
    "decode_session",
    "DEFAULT_KEY_PREFIX",
    "LUA_CAS_SCRIPT",
]
