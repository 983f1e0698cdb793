# PrefSync test scripts
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Iterator

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Logs off
os.environ.setdefault("PREFSYNC_LOG_LEVEL", "off")


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    monkeypatch.delenv("REDIS_URL", raising=False)
    return tmp_path


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> Any:
    from sync_platform.session_store import MemorySessionStore

    return MemorySessionStore(clock=clock)


@pytest.fixture()
def seed(store: Any):
    """Create a session the way the pairing step leaves it."""

    def _seed(token: str = "ABCD2345", preferences: Any = None, last_updated: int = 1_000) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": token,
            "createdAt": last_updated,
            "deviceToken": "device_first",
            "lastUpdated": last_updated,
        }
        if preferences is not None:
            record["preferences"] = preferences
        store.put(token, record, 900)
        return record

    return _seed


@pytest.fixture()
def client(config_base: Path, store: Any) -> Iterator[Any]:
    from fastapi.testclient import TestClient

    from api import syncAPI
    from prefsync import create_app

    syncAPI.set_store(store)
    try:
        yield TestClient(create_app())
    finally:
        syncAPI.set_store(None)
