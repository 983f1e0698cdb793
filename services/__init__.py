# services/__init__.py
# PrefSync - service layer package
from __future__ import annotations

from . import sync_sessions

__all__ = ["sync_sessions"]
