from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from itertools import chain
from pathlib import Path
from typing import Any, Callable
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from ..adapters.calendar import CalendarProvider, CalendarProviderError
from ..domain.drafts import InvalidEventError, build_google_event_payload, event_from_provider
from ..domain.models import CalendarEvent, CalendarEventDraft, CalendarListEntry, DateRange
from ..storage.cache import load_snapshot, save_snapshot

LOGGER = logging.getLogger(__name__)

EVENTS_SNAPSHOT_KIND = "events"
EVENTS_SNAPSHOT_TTL_SECONDS = 60 * 60


def _utc_bound(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CalendarDataService:
    """Calendars, selection and the events of the current view range.

    Events are replaced wholesale on every fetch. A provider failure keeps the
    events already on display and records a single error message. Mutations
    always re-fetch the current range before they count as done.
    """

    def __init__(
        self,
        provider: CalendarProvider,
        *,
        zone: ZoneInfo,
        default_calendar_count: int = 2,
        db_path: Path | None = None,
    ) -> None:
        self._provider = provider
        self._zone = zone
        self._default_calendar_count = default_calendar_count
        self._db_path = db_path
        self._inflight_range_keys: set[str] = set()

        self.calendars: list[CalendarListEntry] = []
        self.selected_calendar_ids: list[str] = []
        self.events: list[CalendarEvent] = []
        self.current_range: DateRange | None = None
        self.loaded_range_key: str | None = None
        self.loading_calendars = False
        self.loading_events = False
        self.error: str | None = None

    @property
    def zone_name(self) -> str:
        return str(self._zone)

    def clear(self) -> None:
        self.calendars = []
        self.selected_calendar_ids = []
        self.events = []
        self.loaded_range_key = None
        self.loading_calendars = False
        self.loading_events = False

    def _initial_selection(self, calendars: list[CalendarListEntry]) -> list[str]:
        known_ids = {calendar.id for calendar in calendars}
        if self.selected_calendar_ids:
            return [calendar_id for calendar_id in self.selected_calendar_ids if calendar_id in known_ids]
        primary = [calendar.id for calendar in calendars if calendar.primary]
        if primary:
            return primary
        return [calendar.id for calendar in calendars[: self._default_calendar_count]]

    async def refresh_calendars(self, token: str | None) -> None:
        if not token:
            self.clear()
            return

        self.loading_calendars = True
        try:
            calendars = await asyncio.to_thread(self._provider.list_calendars, token)
        except CalendarProviderError as exc:
            LOGGER.warning("Calendar list refresh failed: %s", exc)
            self.error = str(exc) or "Unable to load calendars"
            return
        finally:
            self.loading_calendars = False

        self.calendars = calendars
        self.selected_calendar_ids = self._initial_selection(calendars)
        self.error = None

    def toggle_calendar(self, calendar_id: str) -> list[str]:
        if calendar_id in self.selected_calendar_ids:
            self.selected_calendar_ids = [item for item in self.selected_calendar_ids if item != calendar_id]
        else:
            self.selected_calendar_ids = [*self.selected_calendar_ids, calendar_id]
        return self.selected_calendar_ids

    def find_event(self, event_id: str) -> CalendarEvent | None:
        return next((event for event in self.events if event.id == event_id), None)

    def _calendar(self, calendar_id: str) -> CalendarListEntry | None:
        return next((calendar for calendar in self.calendars if calendar.id == calendar_id), None)

    async def _fetch_calendar_events(
        self,
        token: str,
        calendar_id: str,
        time_min: str,
        time_max: str,
    ) -> list[CalendarEvent]:
        raw_events = await asyncio.to_thread(
            self._provider.list_events,
            token,
            calendar_id,
            time_min=time_min,
            time_max=time_max,
            time_zone=self.zone_name,
        )
        calendar = self._calendar(calendar_id)
        events: list[CalendarEvent] = []
        for raw in raw_events:
            try:
                events.append(
                    event_from_provider(raw, calendar_id=calendar_id, zone=self._zone, calendar=calendar)
                )
            except (InvalidEventError, ValidationError) as exc:
                LOGGER.warning("Skipping malformed event in calendar '%s': %s", calendar_id, exc)
        return events

    async def _fetch_events(self, token: str, date_range: DateRange) -> bool:
        # current_range is the range on display; loaded_range_key only moves on success.
        self.current_range = date_range
        if not self.selected_calendar_ids:
            self.events = []
            self.loaded_range_key = date_range.key
            return True

        self.loading_events = True
        self._inflight_range_keys.add(date_range.key)
        time_min = _utc_bound(date_range.start)
        time_max = _utc_bound(date_range.end)
        try:
            results = await asyncio.gather(
                *(
                    self._fetch_calendar_events(token, calendar_id, time_min, time_max)
                    for calendar_id in self.selected_calendar_ids
                )
            )
        except CalendarProviderError as exc:
            LOGGER.warning("Event refresh for %s failed: %s", date_range.key, exc)
            self.error = str(exc) or "Unable to load events"
            return False
        finally:
            self._inflight_range_keys.discard(date_range.key)
            self.loading_events = bool(self._inflight_range_keys)

        events = sorted(chain.from_iterable(results), key=lambda event: event.start)
        self._store_snapshot(date_range, events)
        if self.current_range is not None and self.current_range.key != date_range.key:
            LOGGER.debug("Events for %s superseded by %s", date_range.key, self.current_range.key)
            return True

        self.events = events
        self.loaded_range_key = date_range.key
        self.error = None
        LOGGER.info("Loaded %d events for %s", len(self.events), date_range.key)
        return True

    async def refresh_events(self, token: str | None, date_range: DateRange) -> bool:
        """Fetch the range unless a fetch for the same range is already running."""
        if not token:
            self.events = []
            self.current_range = date_range
            self.loaded_range_key = None
            return False
        if date_range.key in self._inflight_range_keys:
            LOGGER.debug("Event refresh for %s already in flight", date_range.key)
            return False
        return await self._fetch_events(token, date_range)

    def needs_refresh(self, date_range: DateRange) -> bool:
        return self.loaded_range_key != date_range.key or self.error is not None

    def events_for_range(self, date_range: DateRange) -> list[CalendarEvent]:
        if self.loaded_range_key == date_range.key:
            return self.events
        return self._cached_events(date_range)

    def _store_snapshot(self, date_range: DateRange, events: list[CalendarEvent]) -> None:
        if self._db_path is None:
            return
        save_snapshot(
            self._db_path,
            EVENTS_SNAPSHOT_KIND,
            date_range.key,
            [event.model_dump(mode="json") for event in events],
            ttl_seconds=EVENTS_SNAPSHOT_TTL_SECONDS,
        )

    def _cached_events(self, date_range: DateRange) -> list[CalendarEvent]:
        if self._db_path is None:
            return []
        snapshot = load_snapshot(self._db_path, EVENTS_SNAPSHOT_KIND, date_range.key)
        if snapshot is None or not isinstance(snapshot.payload, list):
            return []
        events: list[CalendarEvent] = []
        for item in snapshot.payload:
            try:
                event = CalendarEvent.model_validate(item)
            except ValidationError:
                continue
            events.append(
                event.model_copy(
                    update={
                        "start": event.start.astimezone(self._zone),
                        "end": event.end.astimezone(self._zone),
                    }
                )
            )
        return events

    async def _mutate(self, token: str | None, mutation: Callable[[str], Any]) -> None:
        if not token:
            self.error = "Not authenticated"
            raise CalendarProviderError(self.error)

        self.loading_events = True
        try:
            await asyncio.to_thread(mutation, token)
        except CalendarProviderError as exc:
            self.error = str(exc) or "Unable to update events"
            raise
        finally:
            self.loading_events = False

        if self.current_range is not None and not await self._fetch_events(token, self.current_range):
            raise CalendarProviderError(self.error or "Unable to load events")
        self.error = None

    async def create_event(self, token: str | None, draft: CalendarEventDraft) -> None:
        payload = build_google_event_payload(draft, self.zone_name)
        await self._mutate(
            token,
            lambda access_token: self._provider.create_event(access_token, draft.calendar_id, payload),
        )

    async def update_event(self, token: str | None, draft: CalendarEventDraft) -> None:
        if draft.external_id is None:
            raise InvalidEventError("Only existing events can be updated")
        payload = build_google_event_payload(draft, self.zone_name)
        external_id = draft.external_id
        await self._mutate(
            token,
            lambda access_token: self._provider.update_event(
                access_token, draft.calendar_id, external_id, payload
            ),
        )

    async def delete_event(self, token: str | None, calendar_id: str, external_id: str) -> None:
        await self._mutate(
            token,
            lambda access_token: self._provider.delete_event(access_token, calendar_id, external_id),
        )
