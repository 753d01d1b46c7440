from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from .dates import start_of_day
from .minutes import MINUTES_IN_DAY, clamp_minutes, round_to_step
from .models import (
    ONE_MILLISECOND,
    AllDayTiming,
    CalendarEvent,
    CalendarEventDraft,
    CalendarListEntry,
    TimedTiming,
)

DEFAULT_EVENT_TITLE = "Untitled event"
NEW_EVENT_TITLE = "New event"
DRAFT_DURATION_MINUTES = 60
FORM_DATE_FORMAT = "%Y-%m-%d"
FORM_DATETIME_FORMAT = "%Y-%m-%dT%H:%M"


class InvalidEventError(ValueError):
    """Raised when event input cannot be turned into a draft or provider payload."""


def round_minutes_to_nearest_hour(minutes: float) -> int:
    rounded = round_to_step(clamp_minutes(minutes), 60)
    return min(rounded, MINUTES_IN_DAY - DRAFT_DURATION_MINUTES)


def build_draft_times(day: datetime, clicked_minutes: float) -> tuple[datetime, datetime]:
    start = start_of_day(day) + timedelta(minutes=round_minutes_to_nearest_hour(clicked_minutes))
    return start, start + timedelta(minutes=DRAFT_DURATION_MINUTES)


def new_draft(
    calendar_id: str,
    day: datetime,
    clicked_minutes: float,
    *,
    title: str = NEW_EVENT_TITLE,
) -> CalendarEventDraft:
    start, end = build_draft_times(day, clicked_minutes)
    return CalendarEventDraft(
        calendar_id=calendar_id,
        title=title,
        timing=TimedTiming(start=start, end=end),
    )


def draft_from_event(event: CalendarEvent) -> CalendarEventDraft:
    return CalendarEventDraft(
        calendar_id=event.calendar_id,
        title=event.title,
        timing=event.timing,
        location=event.location,
        description=event.description,
        event_id=event.id,
        external_id=event.external_id,
    )


def _load_zone(zone_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidEventError(f"Unknown timezone: {zone_name}") from exc


def _utc_iso(value: datetime) -> str:
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidEventError("Invalid event time")
    try:
        utc_value = value.astimezone(timezone.utc)
    except (OverflowError, ValueError) as exc:
        raise InvalidEventError("Invalid event time") from exc
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_google_event_payload(draft: CalendarEventDraft, zone_name: str) -> dict[str, Any]:
    """Serialize a draft into the Google Calendar event resource shape.

    All-day drafts keep an inclusive last day internally; the wire format
    wants the exclusive day after it, so one day is added here and only here.
    """
    _load_zone(zone_name)
    payload: dict[str, Any] = {"summary": draft.title.strip() or DEFAULT_EVENT_TITLE}
    if draft.description is not None:
        payload["description"] = draft.description
    if draft.location is not None:
        payload["location"] = draft.location

    timing = draft.timing
    if isinstance(timing, AllDayTiming):
        payload["start"] = {"date": timing.start_day.isoformat()}
        payload["end"] = {"date": (timing.end_day + timedelta(days=1)).isoformat()}
        return payload
    if isinstance(timing, TimedTiming):
        payload["start"] = {"dateTime": _utc_iso(timing.start), "timeZone": zone_name}
        payload["end"] = {"dateTime": _utc_iso(timing.end), "timeZone": zone_name}
        return payload
    raise InvalidEventError(f"Unsupported event timing: {type(timing).__name__}")


def _parse_provider_datetime(value: str, zone_name: str | None) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidEventError(f"Invalid event time: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_load_zone(zone_name or "UTC"))
    return parsed


def _parse_provider_date(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise InvalidEventError(f"Invalid event date: {value}") from exc


def _parse_boundary(info: Mapping[str, Any], zone: ZoneInfo, *, field_name: str) -> datetime:
    raw_datetime = info.get("dateTime")
    if isinstance(raw_datetime, str) and raw_datetime.strip():
        return _parse_provider_datetime(raw_datetime, info.get("timeZone")).astimezone(zone)
    raw_date = info.get("date")
    if isinstance(raw_date, str) and raw_date.strip():
        return datetime.combine(_parse_provider_date(raw_date), time.min, tzinfo=zone)
    raise InvalidEventError(f"Event {field_name} has neither date nor dateTime")


def event_from_provider(
    raw: Mapping[str, Any],
    *,
    calendar_id: str,
    zone: ZoneInfo,
    calendar: CalendarListEntry | None = None,
) -> CalendarEvent:
    """Map a provider event resource to a :class:`CalendarEvent` in ``zone``."""
    external_id = raw.get("id")
    if not isinstance(external_id, str) or not external_id:
        raise InvalidEventError("Event is missing its id")

    start_info = raw.get("start") or {}
    end_info = raw.get("end") or {}
    if not isinstance(start_info, Mapping) or not isinstance(end_info, Mapping):
        raise InvalidEventError("Event start/end must be objects")

    is_all_day = bool(start_info.get("date"))
    start = _parse_boundary(start_info, zone, field_name="start")
    end = _parse_boundary(end_info, zone, field_name="end")
    if is_all_day:
        end = end - ONE_MILLISECOND
        if end <= start:
            end = start + timedelta(days=1) - ONE_MILLISECOND
    elif end <= start:
        end = start + timedelta(minutes=30)

    title = raw.get("summary")
    return CalendarEvent(
        id=f"{calendar_id}-{external_id}",
        external_id=external_id,
        calendar_id=calendar_id,
        calendar_summary=calendar.summary if calendar is not None else "Calendar",
        title=title.strip() if isinstance(title, str) and title.strip() else DEFAULT_EVENT_TITLE,
        start=start,
        end=end,
        is_all_day=is_all_day,
        hangout_link=raw.get("hangoutLink"),
        location=raw.get("location"),
        description=raw.get("description"),
        color=calendar.background_color if calendar is not None else None,
    )


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def parse_draft_form(
    *,
    calendar_id: str,
    title: str,
    is_all_day: bool,
    start_value: str,
    end_value: str,
    zone: ZoneInfo,
    location: str | None = None,
    description: str | None = None,
    event_id: str | None = None,
    external_id: str | None = None,
) -> CalendarEventDraft:
    """Validate editor input into a draft.

    All-day forms carry an exclusive end date (the day after the last day),
    timed forms carry local ``YYYY-MM-DDTHH:MM`` values in ``zone``.
    """
    if not calendar_id.strip() or not start_value.strip() or not end_value.strip():
        raise InvalidEventError("Calendar, start and end are required")

    if is_all_day:
        try:
            start_day = datetime.strptime(start_value.strip(), FORM_DATE_FORMAT).date()
            exclusive_end = datetime.strptime(end_value.strip(), FORM_DATE_FORMAT).date()
        except ValueError as exc:
            raise InvalidEventError("Enter valid dates") from exc
        if exclusive_end <= start_day:
            raise InvalidEventError("End must be after start")
        timing: AllDayTiming | TimedTiming = AllDayTiming(
            start_day=start_day,
            end_day=exclusive_end - timedelta(days=1),
        )
    else:
        try:
            start = datetime.strptime(start_value.strip(), FORM_DATETIME_FORMAT).replace(tzinfo=zone)
            end = datetime.strptime(end_value.strip(), FORM_DATETIME_FORMAT).replace(tzinfo=zone)
        except ValueError as exc:
            raise InvalidEventError("Enter valid times") from exc
        if end <= start:
            raise InvalidEventError("End must be after start")
        timing = TimedTiming(start=start, end=end)

    try:
        return CalendarEventDraft(
            calendar_id=calendar_id,
            title=title.strip() or DEFAULT_EVENT_TITLE,
            timing=timing,
            location=_optional_text(location),
            description=_optional_text(description),
            event_id=event_id,
            external_id=external_id,
        )
    except ValidationError as exc:
        raise InvalidEventError(str(exc)) from exc
