"""Output layer - Persistence of calibrated loops."""

from .store import LoopSyncConfig, LoopSyncStore, progression_sync_key

__all__ = [
    "LoopSyncConfig",
    "LoopSyncStore",
    "progression_sync_key",
]
