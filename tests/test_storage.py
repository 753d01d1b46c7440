from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from daylight_calendar.storage import (
    initialize_database,
    load_fresh_payload,
    load_snapshot,
    prune_stale_snapshots,
    save_snapshot,
)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "nested" / "calendar.db"
    initialize_database(path)
    return path


def test_snapshot_is_upserted_per_kind_and_key(db_path):
    save_snapshot(db_path, "events", "week-1", [{"id": "a"}], ttl_seconds=60)
    save_snapshot(db_path, "events", "week-1", [{"id": "b"}], ttl_seconds=60)
    save_snapshot(db_path, "location", "week-1", {"lat": 1}, ttl_seconds=60)

    assert load_snapshot(db_path, "events", "week-1").payload == [{"id": "b"}]
    assert load_snapshot(db_path, "location", "week-1").payload == {"lat": 1}
    assert load_snapshot(db_path, "events", "week-2") is None


def test_stale_snapshots_are_not_fresh_but_still_loadable(db_path):
    old = datetime.now(timezone.utc) - timedelta(hours=2)
    save_snapshot(db_path, "location", "current", {"lat": 1}, ttl_seconds=3600, fetched_at=old)

    snapshot = load_snapshot(db_path, "location", "current")
    assert snapshot.is_stale()
    assert snapshot.fetched_at == old
    assert load_fresh_payload(db_path, "location", "current") is None


def test_prune_removes_only_stale_rows(db_path):
    now = datetime(2024, 7, 10, 12, tzinfo=timezone.utc)
    save_snapshot(db_path, "events", "old", [], ttl_seconds=60, fetched_at=now - timedelta(minutes=5))
    save_snapshot(db_path, "events", "new", [], ttl_seconds=600, fetched_at=now - timedelta(minutes=5))

    assert prune_stale_snapshots(db_path, now=now) == 1
    assert load_snapshot(db_path, "events", "old") is None
    assert load_snapshot(db_path, "events", "new") is not None


def test_negative_ttl_is_rejected(db_path):
    with pytest.raises(ValueError):
        save_snapshot(db_path, "events", "x", [], ttl_seconds=-1)
