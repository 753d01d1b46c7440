from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .adapters.calendar import CalendarProviderError
from .context import AppContext
from .storage.cache import prune_stale_snapshots

LOGGER = logging.getLogger(__name__)

LOCATION_REFRESH_INTERVAL_MINUTES = 60
SNAPSHOT_PRUNE_INTERVAL_MINUTES = 6 * 60


async def run_calendars_refresh_job(context: AppContext) -> None:
    await context.calendar_data.refresh_calendars(context.token)
    LOGGER.info("Calendar list refresh job loaded %d calendars", len(context.calendar_data.calendars))


async def run_events_refresh_job(context: AppContext) -> None:
    date_range = context.calendar_data.current_range
    if date_range is None:
        return
    try:
        refreshed = await context.calendar_data.refresh_events(context.token, date_range)
    except CalendarProviderError:
        LOGGER.exception("Events refresh job failed")
        return
    if refreshed:
        LOGGER.info("Events refresh job updated %s", date_range.key)
    elif context.calendar_data.error:
        LOGGER.warning("Events refresh job kept stale events: %s", context.calendar_data.error)


def run_location_refresh_job(context: AppContext) -> None:
    if context.settings.yaml.location.mode == "manual" or context.location.is_manual:
        return
    context.location.resolve(context.settings)


def run_snapshot_prune_job(context: AppContext) -> None:
    removed = prune_stale_snapshots(context.settings.db_path)
    LOGGER.info("Snapshot prune job removed %d stale entries", removed)


def build_scheduler(context: AppContext) -> AsyncIOScheduler:
    settings = context.settings
    scheduler = AsyncIOScheduler(timezone=settings.timezone)
    scheduler.add_job(
        run_calendars_refresh_job,
        "interval",
        kwargs={"context": context},
        minutes=settings.yaml.refresh.interval_minutes * 6,
        jitter=settings.yaml.refresh.jitter_seconds,
        id="calendars_refresh_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=120,
    )
    scheduler.add_job(
        run_events_refresh_job,
        "interval",
        kwargs={"context": context},
        minutes=settings.yaml.refresh.interval_minutes,
        jitter=settings.yaml.refresh.jitter_seconds,
        id="events_refresh_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=120,
    )
    scheduler.add_job(
        run_location_refresh_job,
        "interval",
        kwargs={"context": context},
        minutes=LOCATION_REFRESH_INTERVAL_MINUTES,
        jitter=settings.yaml.refresh.jitter_seconds,
        id="location_refresh_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )
    scheduler.add_job(
        run_snapshot_prune_job,
        "interval",
        kwargs={"context": context},
        minutes=SNAPSHOT_PRUNE_INTERVAL_MINUTES,
        id="snapshot_prune_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=600,
    )
    return scheduler
