# _logging.py
# PrefSync - structured logger with colored console output and an optional JSON-lines sink
from __future__ import annotations
import os, sys, datetime, json, threading, time
from typing import Any, Optional, TextIO, Mapping, Dict

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

LEVELS = {"off": 100, "silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# ── runtime debug gate (reads runtime.debug from config, cached briefly) ──
_DEBUG_CACHE: Dict[str, Any] = {"ts": 0.0, "val": False}

def _debug_enabled() -> bool:
    now = time.time()
    if (now - _DEBUG_CACHE["ts"]) > 5.0:
        try:
            from sync_platform.config_base import load_config
            rt = load_config().get("runtime") or {}
            _DEBUG_CACHE["val"] = bool(rt.get("debug"))
        except Exception:
            _DEBUG_CACHE["val"] = False
        _DEBUG_CACHE["ts"] = now
    return bool(_DEBUG_CACHE["val"])

class Logger:
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        use_color: bool = True,
        show_time: bool = True,
        time_fmt: str = "%Y-%m-%d %H:%M:%S",
        tag_color_map: Optional[dict[str, str]] = None,
        *,
        _context: Optional[Dict[str, Any]] = None,
        _name: Optional[str] = None,
        _json_stream: Optional[TextIO] = None,
        _lock: Optional[threading.Lock] = None,
        _shared: Optional[Dict[str, Any]] = None,
    ):
        self.stream = stream
        self.use_color = use_color
        self.show_time = show_time
        self.time_fmt = time_fmt
        self.tag_color_map = tag_color_map or {
            "DEBUG": YELLOW,
            "INFO": BLUE,
            "WARN": YELLOW,
            "ERROR": RED,
            "SUCCESS": GREEN,
        }
        self._context: Dict[str, Any] = dict(_context or {})
        if _name:
            self._context.setdefault("module", _name)
        # level and JSON sink are shared by a logger and all of its children
        self._shared: Dict[str, Any] = _shared if _shared is not None else {
            "level_no": LEVELS.get(level, 20),
            "json": _json_stream,
        }
        self._lock = _lock or threading.Lock()

    # Configuration
    @property
    def level_no(self) -> int:
        return int(self._shared["level_no"])

    def set_level(self, level: str) -> None:
        self._shared["level_no"] = LEVELS.get(str(level).lower(), self.level_no)

    def enable_json(self, file_path: str) -> None:
        self._shared["json"] = open(file_path, "a", encoding="utf-8")

    def configure(self, cfg: Mapping[str, Any]) -> None:
        rt = (cfg.get("runtime") or {}) if isinstance(cfg, Mapping) else {}
        if rt.get("debug"):
            self.set_level("debug")
        path = str(rt.get("log_json") or "").strip()
        if path and self._shared.get("json") is None:
            self.enable_json(path)

    # Context
    def bind(self, **ctx: Any) -> "Logger":
        new_ctx = dict(self._context); new_ctx.update(ctx)
        return Logger(
            stream=self.stream,
            use_color=self.use_color,
            show_time=self.show_time,
            time_fmt=self.time_fmt,
            tag_color_map=dict(self.tag_color_map),
            _context=new_ctx,
            _name=new_ctx.get("module"),
            _lock=self._lock,
            _shared=self._shared,
        )

    def child(self, name: str) -> "Logger":
        return self.bind(module=name)

    # Formatting
    def _fmt_text(self, display_level: str, msg: str) -> str:
        mod = str(self._context.get("module") or "").strip()
        col = self.tag_color_map.get(display_level) if self.use_color else None
        lvl_disp = f"{col}{display_level}{RESET}" if col else display_level
        head = f"[{mod}]" if mod else ""
        line = f"{head} {lvl_disp} {msg}".strip()

        if self.show_time:
            ts = datetime.datetime.now().strftime(self.time_fmt)
            prefix = f"{DIM}[{ts}]{RESET}" if self.use_color else f"[{ts}]"
            return f"{prefix} {line}"
        return line

    def _write_sinks(self, display_level: str, text: str, *, msg: str, extra: Optional[Mapping[str, Any]]) -> None:
        with self._lock:
            self.stream.write(text + "\n")
            self.stream.flush()
            js = self._shared.get("json")
            if js:
                payload: Dict[str, Any] = {
                    "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                    "level": display_level,
                    "msg": msg,
                    "ctx": self._context or {},
                }
                if extra:
                    payload["extra"] = dict(extra)
                js.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
                js.flush()

    def _emit(self, severity: str, display_level: str, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        sev_no = LEVELS.get(severity, LEVELS["info"])
        if self.level_no > sev_no:
            # debug lines can still be switched on at runtime from config
            if not (severity == "debug" and self.level_no <= LEVELS["info"] and _debug_enabled()):
                return
        msg = " ".join(str(p) for p in parts)
        if extra:
            msg_txt = msg + " " + " ".join(f"{k}={v}" for k, v in extra.items())
        else:
            msg_txt = msg
        self._write_sinks(display_level, self._fmt_text(display_level, msg_txt), msg=msg, extra=extra)

    # Public API
    def debug(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("debug", "DEBUG", *parts, extra=extra)

    def info(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "INFO", *parts, extra=extra)

    def warn(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("warn", "WARN", *parts, extra=extra)

    def error(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("error", "ERROR", *parts, extra=extra)

    def success(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "SUCCESS", *parts, extra=extra)


# default instance; PREFSYNC_LOG_LEVEL=off silences it (tests)
log = Logger(
    level=os.getenv("PREFSYNC_LOG_LEVEL", "info").strip().lower() or "info",
    use_color=sys.stdout.isatty(),
)

__all__ = ["Logger", "log", "LEVELS", "RESET", "DIM", "RED", "GREEN", "YELLOW", "BLUE"]
