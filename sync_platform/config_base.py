# sync_platform/config_base.py
# PrefSync - config location, defaults and load/save
from __future__ import annotations

import copy
import json
import os
import secrets
import threading
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in container that mounts /config)
      3) Project root (two levels up from this file)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]

# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- Session store -------------------------------------------------------
    "store": {
        "backend": "memory",                            # "memory" (single process) | "redis"
        "redis_url": "redis://localhost:6379/0",        # Used when backend == "redis"; $REDIS_URL wins
        "key_prefix": "sync_session_",                  # Namespaced key: <prefix><syncToken>
        "timeout": 5.0,                                 # Socket timeout (seconds) for store round-trips
    },

    # --- Sync / merge --------------------------------------------------------
    "sync": {
        "session_ttl_seconds": 900,                     # TTL refreshed on every successful update
        "cas_max_attempts": 5,                          # Read-merge-write retries when another device wrote first
        "search_history_limit": 50,                     # Positional cap applied after merging searchHistory
        "clear_on_empty": False,                        # True: only null skips a key, [] / {} / 0 are applied
    },

    # --- Runtime / Diagnostics ----------------------------------------------
    "runtime": {
        "debug": False,                                 # Debug log lines
        "debug_http": False,                            # Log every request, not only failures
        "log_json": "",                                 # Optional JSON-lines log file path
    },

    # --- HTTP server ---------------------------------------------------------
    "server": {
        "host": "0.0.0.0",
        "port": 8788,
    },
}


# ------------------------------------------------------------
# Helpers: paths, IO, merging
# ------------------------------------------------------------
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"

def config_path() -> Path:
    return _cfg_file()


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)  # type: ignore[assignment]
        else:
            out[k] = v
    return out


def _as_int(value: Any, default: int, *, lo: int = 1) -> int:
    try:
        return max(lo, int(value))
    except (TypeError, ValueError):
        return default


def _normalize(cfg: Dict[str, Any]) -> Dict[str, Any]:
    store = cfg.setdefault("store", {})
    backend = str(store.get("backend") or "memory").strip().lower()
    store["backend"] = backend if backend in ("memory", "redis") else "memory"
    env_url = os.getenv("REDIS_URL")
    if env_url:
        store["redis_url"] = env_url

    sync = cfg.setdefault("sync", {})
    sync["session_ttl_seconds"] = _as_int(sync.get("session_ttl_seconds"), 900)
    sync["cas_max_attempts"] = _as_int(sync.get("cas_max_attempts"), 5)
    sync["search_history_limit"] = _as_int(sync.get("search_history_limit"), 50)
    sync["clear_on_empty"] = bool(sync.get("clear_on_empty", False))
    return cfg


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Read config.json
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except Exception:
            user_cfg = {}

    return _normalize(_deep_merge(DEFAULT_CFG, user_cfg))


def save_config(cfg: Dict[str, Any]) -> None:
    """
    Write to config.json
    """
    _write_json_atomic(_cfg_file(), dict(cfg or {}))
