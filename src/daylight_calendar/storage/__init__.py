from .cache import (
    CachedSnapshot,
    load_fresh_payload,
    load_snapshot,
    prune_stale_snapshots,
    save_snapshot,
)
from .db import initialize_database

__all__ = [
    "CachedSnapshot",
    "initialize_database",
    "load_fresh_payload",
    "load_snapshot",
    "prune_stale_snapshots",
    "save_snapshot",
]
