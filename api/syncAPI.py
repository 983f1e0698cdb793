# api/syncAPI.py
# PrefSync - device preference sync endpoints
from __future__ import annotations

import threading
from typing import Any

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse, Response

from _logging import log as _root_log
from services.sync_sessions import (
    ConcurrentUpdateError,
    InvalidUpdate,
    SessionNotFound,
    SyncOptions,
    apply_update,
    fetch_state,
    validate_update,
)
from sync_platform.config_base import load_config
from sync_platform.session_store import SessionStore, StoreError, build_store

router = APIRouter(prefix="/api", tags=["sync"])

log = _root_log.child("API")

_STORE: SessionStore | None = None
_STORE_LOCK = threading.Lock()


def set_store(store: SessionStore | None) -> None:
    global _STORE
    with _STORE_LOCK:
        _STORE = store


def get_store() -> SessionStore:
    global _STORE
    with _STORE_LOCK:
        if _STORE is None:
            _STORE = build_store(load_config())
        return _STORE


def _err(msg: str, *, status_code: int) -> JSONResponse:
    return JSONResponse({"error": msg}, status_code=status_code)


@router.post("/sendUpdate")
def api_send_update(body: Any = Body(None)) -> JSONResponse:
    try:
        sync_token, device_token, prefs = validate_update(body)
    except InvalidUpdate as e:
        log.debug(f"rejected update: {e}")
        return _err(str(e), status_code=400)

    try:
        res = apply_update(
            get_store(),
            sync_token,
            device_token,
            prefs,
            options=SyncOptions.from_config(load_config()),
        )
    except SessionNotFound:
        log.info(f"update for unknown or expired session {sync_token}")
        return _err("Sync session not found", status_code=404)
    except (StoreError, ConcurrentUpdateError) as e:
        log.error(f"Error sending update: {e}", extra={"syncToken": sync_token, "deviceToken": device_token})
        return _err("Failed to send update", status_code=500)
    except Exception as e:
        log.error(f"Error sending update: {type(e).__name__}: {e}", extra={"syncToken": sync_token})
        return _err("Failed to send update", status_code=500)

    return JSONResponse(res.as_payload(), status_code=200)


@router.get("/fetchState", response_model=None)
def api_fetch_state(
    syncToken: str | None = Query(None),
    deviceToken: str | None = Query(None),
    lastKnownUpdate: str | None = Query(None),
) -> Response:
    if not syncToken or not deviceToken:
        return _err("Missing required parameters: syncToken, deviceToken", status_code=400)

    try:
        state = fetch_state(get_store(), syncToken, lastKnownUpdate)
    except SessionNotFound:
        return _err("Sync session not found or expired", status_code=404)
    except Exception as e:
        log.error(f"Error fetching state: {type(e).__name__}: {e}", extra={"syncToken": syncToken})
        return _err("Failed to fetch sync state", status_code=500)

    if state is None:
        return Response(status_code=204)
    log.debug(f"Fetching state for device: {deviceToken} from session: {syncToken}")
    return JSONResponse(state, status_code=200)
