# PrefSync test scripts
from __future__ import annotations

import json
from pathlib import Path

import responses

from scripts import sync_push

BASE = "http://sync.example"
ARGS = ["--url", BASE, "--sync-token", "ABCD2345", "--device-token", "d1"]


@responses.activate
def test_push_sends_bundle_file(tmp_path: Path, capsys) -> None:
    bundle = tmp_path / "prefs.json"
    bundle.write_text(json.dumps({"likedMovies": [3]}), "utf-8")
    responses.add(responses.POST, f"{BASE}/api/sendUpdate",
                  json={"success": True, "lastUpdated": 10, "preferenceCount": 1}, status=200)

    assert sync_push.main([*ARGS, "push", str(bundle)]) == 0
    assert "1 categories" in capsys.readouterr().out


@responses.activate
def test_pull_reports_expired_session(capsys) -> None:
    responses.add(responses.GET, f"{BASE}/api/fetchState", json={"error": "Sync session not found or expired"}, status=404)
    assert sync_push.main([*ARGS, "pull"]) == 2
    assert "pair the device again" in capsys.readouterr().out


def test_push_rejects_non_object_bundle(tmp_path: Path) -> None:
    bundle = tmp_path / "prefs.json"
    bundle.write_text("[1, 2]", "utf-8")
    assert sync_push.main([*ARGS, "push", str(bundle)]) == 1
