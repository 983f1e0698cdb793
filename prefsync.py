# prefsync.py
# PrefSync - multi-device preference sync service
from __future__ import annotations

import time

import uvicorn
from fastapi import FastAPI, Request

from _logging import log as _root_log
from api import register as register_api
from sync_platform.config_base import load_config

log = _root_log.child("HTTP")

_DEBUG_HTTP_CACHE = {"ts": 0.0, "val": False}


def _is_http_debug_enabled() -> bool:
    try:
        now = time.time()
        if now - _DEBUG_HTTP_CACHE["ts"] > 2.0:
            cfg = load_config()
            _DEBUG_HTTP_CACHE["val"] = bool(((cfg.get("runtime") or {}).get("debug_http") or False))
            _DEBUG_HTTP_CACHE["ts"] = now
        return bool(_DEBUG_HTTP_CACHE["val"])
    except Exception:
        return False


def create_app() -> FastAPI:
    app = FastAPI(title="PrefSync")

    @app.middleware("http")
    async def conditional_access_logger(request: Request, call_next):
        t0 = time.time()
        client = request.client
        err: Exception | None = None
        status = 0
        response = None
        try:
            response = await call_next(request)
            status = getattr(response, "status_code", 0) or 0
        except Exception as e:
            err = e
            status = 500
        finally:
            # failures always, everything when runtime.debug_http is on
            if err is not None or status >= 500 or _is_http_debug_enabled():
                dt_ms = int((time.time() - t0) * 1000)
                host = f"{client.host}:{client.port}" if client else "-"
                line = f'{host} - "{request.method} {request.url.path}" {status} ({dt_ms} ms)'
                if err is not None or status >= 500:
                    log.error(line)
                else:
                    log.info(line)

        if err is not None:
            raise err
        return response

    register_api(app)
    return app


app = create_app()


def main() -> None:
    cfg = load_config()
    _root_log.configure(cfg)
    srv = cfg.get("server") or {}
    host = str(srv.get("host") or "0.0.0.0")
    port = int(srv.get("port") or 8788)
    log.info(f"PrefSync listening on {host}:{port} (store={((cfg.get('store') or {}).get('backend'))})")
    uvicorn.run(app, host=host, port=port, log_level="warning")


if __name__ == "__main__":
    main()
