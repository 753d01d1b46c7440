from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .db import open_db


@dataclass(slots=True)
class CachedSnapshot:
    kind: str
    key: str
    payload: Any
    fetched_at: datetime
    ttl_seconds: int

    def is_stale(self, now: datetime | None = None) -> bool:
        reference = now or datetime.now(timezone.utc)
        return (reference - self.fetched_at).total_seconds() > self.ttl_seconds


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def save_snapshot(
    db_path: Path,
    kind: str,
    key: str,
    payload: Any,
    *,
    ttl_seconds: int,
    fetched_at: datetime | None = None,
) -> None:
    if ttl_seconds < 0:
        raise ValueError("ttl_seconds must be >= 0")

    record_time = _as_utc(fetched_at or datetime.now(timezone.utc))
    with open_db(db_path) as connection:
        connection.execute(
            """
            INSERT INTO snapshots (kind, key, json, fetched_at, ttl_seconds)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(kind, key) DO UPDATE SET
                json=excluded.json,
                fetched_at=excluded.fetched_at,
                ttl_seconds=excluded.ttl_seconds
            """,
            (
                kind,
                key,
                json.dumps(payload, ensure_ascii=True, separators=(",", ":")),
                record_time.isoformat(),
                ttl_seconds,
            ),
        )
        connection.commit()


def load_snapshot(db_path: Path, kind: str, key: str) -> CachedSnapshot | None:
    with open_db(db_path) as connection:
        row = connection.execute(
            "SELECT kind, key, json, fetched_at, ttl_seconds FROM snapshots WHERE kind = ? AND key = ?",
            (kind, key),
        ).fetchone()

    if row is None:
        return None
    return CachedSnapshot(
        kind=row["kind"],
        key=row["key"],
        payload=json.loads(row["json"]),
        fetched_at=_as_utc(datetime.fromisoformat(row["fetched_at"])),
        ttl_seconds=int(row["ttl_seconds"]),
    )


def load_fresh_payload(db_path: Path, kind: str, key: str) -> Any | None:
    snapshot = load_snapshot(db_path, kind, key)
    if snapshot is None or snapshot.is_stale():
        return None
    return snapshot.payload


def prune_stale_snapshots(db_path: Path, *, now: datetime | None = None) -> int:
    reference = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    with open_db(db_path) as connection:
        rows = connection.execute("SELECT kind, key, fetched_at, ttl_seconds FROM snapshots").fetchall()
        stale = [
            (row["kind"], row["key"])
            for row in rows
            if (reference - _as_utc(datetime.fromisoformat(row["fetched_at"]))).total_seconds()
            > int(row["ttl_seconds"])
        ]
        connection.executemany("DELETE FROM snapshots WHERE kind = ? AND key = ?", stale)
        connection.commit()
    return len(stale)
