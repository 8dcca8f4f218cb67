from __future__ import annotations

from .engine import SyncEngine, SyncState

__all__ = ["SyncEngine", "SyncState"]
