# sync_platform/client.py
# PrefSync - device-side HTTP client for the sync endpoints
from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Optional

import requests

UA = os.getenv("PREFSYNC_UA", "PrefSync/1.0 (client)")


class SyncClientError(RuntimeError):
    def __init__(self, status: int, message: str):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.message = message


class SessionExpired(SyncClientError):
    """Session unknown or expired; the device has to pair again."""


class SyncClient:
    def __init__(
        self,
        base_url: str,
        sync_token: str,
        device_token: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.sync_token = sync_token
        self.device_token = device_token
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.setdefault("User-Agent", UA)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{path.lstrip('/')}"

    @staticmethod
    def _raise_for(r: requests.Response) -> None:
        if r.status_code < 400:
            return
        try:
            data = r.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            msg = str(data["error"])
        else:
            msg = r.text or str(r.reason)
        if r.status_code == 404:
            raise SessionExpired(404, msg)
        raise SyncClientError(r.status_code, msg)

    def send_update(self, preferences: Mapping[str, Any]) -> dict[str, Any]:
        body = {
            "syncToken": self.sync_token,
            "deviceToken": self.device_token,
            "preferences": dict(preferences),
        }
        r = self.http.post(self._url("sendUpdate"), json=body, timeout=self.timeout)
        self._raise_for(r)
        return r.json()

    def fetch_state(self, last_known_update: int = 0) -> dict[str, Any] | None:
        params = {
            "syncToken": self.sync_token,
            "deviceToken": self.device_token,
            "lastKnownUpdate": str(int(last_known_update or 0)),
        }
        r = self.http.get(self._url("fetchState"), params=params, timeout=self.timeout)
        self._raise_for(r)
        if r.status_code == 204:
            return None
        return r.json()


__all__ = ["SyncClient", "SyncClientError", "SessionExpired"]
