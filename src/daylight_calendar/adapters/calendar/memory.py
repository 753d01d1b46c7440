from __future__ import annotations

import copy
import itertools
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Iterable

from ...domain.drafts import InvalidEventError, event_from_provider
from ...domain.models import CalendarListEntry
from .base import CalendarProviderError

SAMPLE_CALENDAR_ID = "primary"


def _parse_bound(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise CalendarProviderError(f"Invalid time bound: {value}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timed(start: datetime, end: datetime, zone_name: str) -> dict[str, dict[str, str]]:
    return {
        "start": {"dateTime": start.isoformat(), "timeZone": zone_name},
        "end": {"dateTime": end.isoformat(), "timeZone": zone_name},
    }


class InMemoryCalendarProvider:
    """Provider that keeps event resources in process memory.

    Used for local development without a Google account and in tests.
    """

    def __init__(
        self,
        calendars: Iterable[CalendarListEntry] = (),
        events: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self._calendars = list(calendars)
        self._events: dict[str, list[dict[str, Any]]] = {
            calendar_id: [copy.deepcopy(item) for item in items]
            for calendar_id, items in (events or {}).items()
        }
        self._ids = itertools.count(1)
        self.requests: list[tuple[str, str]] = []

    @classmethod
    def sample(cls, zone: tzinfo, today: date) -> InMemoryCalendarProvider:
        zone_name = str(zone)

        def at(day: date, hour: int, minute: int = 0) -> datetime:
            return datetime.combine(day, time(hour, minute), tzinfo=zone)

        calendar = CalendarListEntry(
            id=SAMPLE_CALENDAR_ID,
            summary="Personal",
            primary=True,
            background_color="#2563eb",
            foreground_color="#ffffff",
        )
        tomorrow = today + timedelta(days=1)
        events = [
            {"id": "standup", "summary": "Standup", **_timed(at(today, 9), at(today, 9, 30), zone_name)},
            {"id": "planning", "summary": "Planning", **_timed(at(today, 9, 15), at(today, 10), zone_name)},
            {"id": "lunch", "summary": "Lunch", **_timed(at(today, 12), at(today, 13), zone_name)},
            {
                "id": "offsite",
                "summary": "Offsite",
                "start": {"date": tomorrow.isoformat()},
                "end": {"date": (tomorrow + timedelta(days=2)).isoformat()},
            },
        ]
        return cls([calendar], {SAMPLE_CALENDAR_ID: events})

    def _calendar_events(self, calendar_id: str) -> list[dict[str, Any]]:
        if not any(calendar.id == calendar_id for calendar in self._calendars):
            raise CalendarProviderError(f"Calendar not found: {calendar_id}")
        return self._events.setdefault(calendar_id, [])

    def _find_index(self, calendar_id: str, event_id: str) -> int:
        for index, item in enumerate(self._calendar_events(calendar_id)):
            if item.get("id") == event_id:
                return index
        raise CalendarProviderError("Not Found")

    def list_calendars(self, token: str) -> list[CalendarListEntry]:
        self.requests.append(("list_calendars", ""))
        return [calendar.model_copy() for calendar in self._calendars]

    def list_events(
        self,
        token: str,
        calendar_id: str,
        *,
        time_min: str,
        time_max: str,
        time_zone: str,
    ) -> list[dict[str, Any]]:
        self.requests.append(("list_events", calendar_id))
        window_start = _parse_bound(time_min)
        window_end = _parse_bound(time_max)
        matching: list[dict[str, Any]] = []
        for item in self._calendar_events(calendar_id):
            try:
                event = event_from_provider(item, calendar_id=calendar_id, zone=timezone.utc)
            except InvalidEventError:
                continue
            if event.start <= window_end and event.end >= window_start:
                matching.append(copy.deepcopy(item))
        return matching

    def create_event(self, token: str, calendar_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.requests.append(("create_event", calendar_id))
        stored = {**copy.deepcopy(payload), "id": f"evt{next(self._ids)}"}
        self._calendar_events(calendar_id).append(stored)
        return copy.deepcopy(stored)

    def update_event(
        self,
        token: str,
        calendar_id: str,
        event_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        self.requests.append(("update_event", calendar_id))
        index = self._find_index(calendar_id, event_id)
        stored = {**copy.deepcopy(payload), "id": event_id}
        self._events[calendar_id][index] = stored
        return copy.deepcopy(stored)

    def delete_event(self, token: str, calendar_id: str, event_id: str) -> None:
        self.requests.append(("delete_event", calendar_id))
        index = self._find_index(calendar_id, event_id)
        del self._events[calendar_id][index]
