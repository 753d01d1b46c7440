from __future__ import annotations

import asyncio
from datetime import date

from daylight_calendar.adapters.calendar import InMemoryCalendarProvider
from daylight_calendar.context import LOCAL_DEV_TOKEN, build_context
from daylight_calendar.domain.dates import view_range
from daylight_calendar.domain.models import Coordinates
from daylight_calendar.location import service as location_service
from daylight_calendar.location.service import ResolvedLocation
from daylight_calendar.scheduler import (
    build_scheduler,
    run_events_refresh_job,
    run_location_refresh_job,
    run_snapshot_prune_job,
)
from daylight_calendar.storage.db import initialize_database


def _context(memory_settings, zone):
    initialize_database(memory_settings.db_path)
    provider = InMemoryCalendarProvider.sample(zone, date(2024, 7, 10))
    return build_context(memory_settings, provider=provider)


def test_memory_provider_gets_local_token(memory_settings, zone):
    assert _context(memory_settings, zone).token == LOCAL_DEV_TOKEN


def test_scheduler_registers_refresh_jobs(memory_settings, zone):
    context = _context(memory_settings, zone)

    async def job_ids():
        scheduler = build_scheduler(context)
        return sorted(job.id for job in scheduler.get_jobs())

    assert asyncio.run(job_ids()) == [
        "calendars_refresh_job",
        "events_refresh_job",
        "location_refresh_job",
        "snapshot_prune_job",
    ]


def test_events_job_refreshes_the_current_range(memory_settings, zone, at):
    context = _context(memory_settings, zone)
    asyncio.run(run_events_refresh_job(context))
    assert context.calendar_data.events == []

    asyncio.run(context.calendar_data.refresh_calendars(context.token))
    context.calendar_data.current_range = view_range("week", at(2024, 7, 10), 1)
    asyncio.run(run_events_refresh_job(context))
    assert {event.external_id for event in context.calendar_data.events} == {
        "standup",
        "planning",
        "lunch",
        "offsite",
    }


def test_location_job_leaves_manual_location_alone(memory_settings, zone):
    context = _context(memory_settings, zone)
    run_location_refresh_job(context)
    assert context.location.status == "idle"


def test_prune_job_runs_against_settings_database(memory_settings, zone):
    run_snapshot_prune_job(_context(memory_settings, zone))


def test_location_job_keeps_location_set_by_user(make_settings, zone, monkeypatch):
    settings = make_settings({"provider": {"type": "memory"}})
    context = _context(settings, zone)
    monkeypatch.setattr(
        location_service,
        "get_location",
        lambda _settings: ResolvedLocation(coords=Coordinates(lat=52.52, lon=13.4), label="IP", source="ip"),
    )

    run_location_refresh_job(context)
    assert context.location.label == "IP"

    context.location.set_manual_location(69.65, 18.96, "Tromso")
    run_location_refresh_job(context)

    assert context.location.label == "Tromso"
    assert context.location.coords == Coordinates(lat=69.65, lon=18.96)
    assert context.location.is_manual
