#!/usr/local/bin/python
"""
PrefSync command-line helper.
- push: send a preference bundle (JSON file) into a sync session.
- pull: print the session's current preferences.
"""

from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sync_platform.client import SessionExpired, SyncClient, SyncClientError  # noqa: E402


def load_bundle(path: Path) -> Dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: preference bundle must be a JSON object")
    return data


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Push or pull PrefSync preferences")
    p.add_argument("--url", default="http://localhost:8788", help="service base URL")
    p.add_argument("--sync-token", required=True)
    p.add_argument("--device-token", required=True)
    p.add_argument("--timeout", type=float, default=10.0)
    sub = p.add_subparsers(dest="cmd", required=True)

    push = sub.add_parser("push", help="send a preference bundle file")
    push.add_argument("file", type=Path)

    pull = sub.add_parser("pull", help="print current preferences")
    pull.add_argument("--since", type=int, default=0, help="lastKnownUpdate (epoch ms)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    client = SyncClient(args.url, args.sync_token, args.device_token, timeout=args.timeout)
    try:
        if args.cmd == "push":
            res = client.send_update(load_bundle(args.file))
            print(f"[i] updated: {res.get('preferenceCount')} categories, lastUpdated={res.get('lastUpdated')}")
        else:
            state = client.fetch_state(args.since)
            if state is None:
                print("[i] no updates")
            else:
                print(json.dumps(state, indent=2, ensure_ascii=False))
        return 0
    except SessionExpired:
        print("[!] sync session not found or expired; pair the device again")
        return 2
    except (SyncClientError, requests.RequestException, ValueError) as e:
        print(f"[!] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
