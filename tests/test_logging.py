# PrefSync test scripts
from __future__ import annotations

import io
import json
from pathlib import Path

from _logging import Logger


def _logger(level: str = "info") -> tuple[Logger, io.StringIO]:
    buf = io.StringIO()
    return Logger(stream=buf, level=level, use_color=False, show_time=False), buf


def test_child_tags_module_and_respects_level() -> None:
    lg, buf = _logger("warn")
    api = lg.child("API")
    api.info("hidden")
    api.error("store down", extra={"syncToken": "T1"})
    assert buf.getvalue().splitlines() == ["[API] ERROR store down syncToken=T1"]


def test_level_is_shared_with_children() -> None:
    lg, buf = _logger("info")
    child = lg.child("SYNC")
    lg.set_level("off")
    child.error("nope")
    assert buf.getvalue() == ""


def test_json_sink(tmp_path: Path) -> None:
    lg, _ = _logger()
    out = tmp_path / "log.jsonl"
    lg.configure({"runtime": {"log_json": str(out)}})
    lg.child("SYNC").info("Updated sync session", extra={"attempt": 1})

    rec = json.loads(out.read_text("utf-8").splitlines()[0])
    assert rec["level"] == "INFO"
    assert rec["msg"] == "Updated sync session"
    assert rec["ctx"] == {"module": "SYNC"}
    assert rec["extra"] == {"attempt": 1}
    assert rec["ts"].endswith("Z")


def test_success_is_info_severity_with_its_own_tag() -> None:
    lg, buf = _logger("info")
    lg.child("SYNC").success("Updated sync session: T1 by device: d1", extra={"keys": 2})
    lg.set_level("warn")
    lg.success("hidden")
    assert buf.getvalue().splitlines() == ["[SYNC] SUCCESS Updated sync session: T1 by device: d1 keys=2"]
