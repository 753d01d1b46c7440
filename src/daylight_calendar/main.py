from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .adapters.calendar import CalendarProvider, CalendarProviderError
from .context import AppContext, build_context
from .daylight.service import build_daylight_map, format_coordinates, shading_for_day
from .domain.colors import DEFAULT_EVENT_COLOR, text_color_for_background
from .domain.dates import (
    CalendarView,
    days_in_range,
    in_anchor_month,
    is_same_day,
    month_matrix,
    shift_anchor,
    toolbar_label,
    view_range,
)
from .domain.drafts import InvalidEventError, draft_from_event, new_draft, parse_draft_form
from .domain.drag import Committed, Idle, begin_drag, cancel, release
from .domain.layout import event_segments_for_day, month_cell_events
from .domain.models import CalendarEvent, DateRange, TimedTiming
from .scheduler import build_scheduler
from .settings import AppSettings, load_settings
from .storage.db import initialize_database

NOT_AUTHENTICATED = "Not authenticated"


class DraftRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    day: date
    clicked_minutes: float
    calendar_id: str | None = None


class EventForm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    calendar_id: str = ""
    title: str = ""
    is_all_day: bool = False
    start: str
    end: str
    location: str | None = None
    description: str | None = None


class DragRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_id: str
    origin_y: float
    pointer_y: float
    hour_height: float | None = Field(default=None, gt=0)
    cancelled: bool = False


class LocationUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lat: Any = None
    lon: Any = None
    label: str | None = None


def _get_context(request: Request) -> AppContext:
    return request.app.state.context


def _request_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return _get_context(request).token


def _provider_http_error(exc: CalendarProviderError) -> HTTPException:
    message = str(exc) or "Calendar provider request failed"
    if message == NOT_AUTHENTICATED:
        return HTTPException(status_code=401, detail=message)
    return HTTPException(status_code=502, detail=message)


def _parse_anchor(anchor: date | None, settings: AppSettings) -> datetime:
    if anchor is None:
        return datetime.now(settings.timezone)
    return datetime.combine(anchor, time.min, tzinfo=settings.timezone)


def _event_payload(event: CalendarEvent) -> dict[str, Any]:
    payload = event.model_dump(mode="json")
    payload["text_color"] = text_color_for_background(event.color or DEFAULT_EVENT_COLOR)
    return payload


def _range_payload(date_range: DateRange) -> dict[str, str]:
    return {"start": date_range.start.isoformat(), "end": date_range.end.isoformat()}


def _calendars_payload(context: AppContext) -> dict[str, Any]:
    calendar_data = context.calendar_data
    return {
        "calendars": [
            {
                **calendar.model_dump(mode="json"),
                "selected": calendar.id in calendar_data.selected_calendar_ids,
                "text_color": text_color_for_background(calendar.background_color),
            }
            for calendar in calendar_data.calendars
        ],
        "selected_calendar_ids": calendar_data.selected_calendar_ids,
        "loading": calendar_data.loading_calendars,
        "error": calendar_data.error,
    }


def _location_payload(context: AppContext) -> dict[str, Any]:
    location = context.location
    return {
        "coords": location.coords.model_dump() if location.coords else None,
        "label": location.label,
        "formatted": format_coordinates(location.coords),
        "status": location.status,
        "error": location.error,
    }


def _week_payload(
    context: AppContext,
    date_range: DateRange,
    events: list[CalendarEvent],
    today: datetime,
) -> list[dict[str, Any]]:
    days = days_in_range(date_range)
    daylight = build_daylight_map(days, context.location.coords)

    rows: list[dict[str, Any]] = []
    for day in days:
        layout = event_segments_for_day(events, day)
        window = daylight.get(day.date().isoformat())
        shading = shading_for_day(window, day)
        rows.append(
            {
                "date": day.date().isoformat(),
                "is_today": is_same_day(day, today),
                "all_day": [_event_payload(event) for event in layout.all_day],
                "timed": [
                    {
                        **segment.model_dump(mode="json", exclude={"event"}),
                        "event": _event_payload(segment.event),
                    }
                    for segment in layout.timed
                ],
                "daylight": window.model_dump(mode="json") if window else None,
                "shading": shading.model_dump(mode="json") if shading else None,
            }
        )
    return rows


def _month_payload(
    context: AppContext,
    anchor: datetime,
    events: list[CalendarEvent],
    today: datetime,
) -> list[list[dict[str, Any]]]:
    ui = context.settings.yaml.ui
    weeks: list[list[dict[str, Any]]] = []
    for week in month_matrix(anchor, ui.first_day_of_week):
        cells: list[dict[str, Any]] = []
        for day in week:
            visible, overflow = month_cell_events(events, day, limit=ui.month_cell_event_limit)
            cells.append(
                {
                    "date": day.date().isoformat(),
                    "in_month": in_anchor_month(day, anchor),
                    "is_today": is_same_day(day, today),
                    "events": [_event_payload(event) for event in visible],
                    "overflow": overflow,
                }
            )
        weeks.append(cells)
    return weeks


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings = application.state.settings or load_settings()
    initialize_database(settings.db_path)
    context = build_context(settings, provider=application.state.provider)
    await asyncio.to_thread(context.location.resolve, settings)
    await context.calendar_data.refresh_calendars(context.token)
    scheduler = build_scheduler(context)
    scheduler.start()

    application.state.settings = settings
    application.state.context = context
    application.state.scheduler = scheduler
    application.state.started_at_utc = datetime.now(timezone.utc)

    try:
        yield
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)


def create_app(
    settings: AppSettings | None = None,
    provider: CalendarProvider | None = None,
) -> FastAPI:
    application = FastAPI(title="Daylight Calendar", version="0.1.0", lifespan=lifespan)
    application.state.settings = settings
    application.state.provider = provider
    _register_routes(application)
    return application


def _register_routes(application: FastAPI) -> None:
    @application.get("/health", response_class=JSONResponse)
    async def health(request: Request) -> JSONResponse:
        context = _get_context(request)
        settings = context.settings
        return JSONResponse(
            {
                "status": "ok",
                "service": "daylight-calendar",
                "environment": settings.env.calendar_env,
                "timezone": settings.env.calendar_timezone,
                "provider": settings.yaml.provider.type,
                "authenticated": bool(context.token),
                "scheduler_running": request.app.state.scheduler.running,
                "calendars": len(context.calendar_data.calendars),
                "events": len(context.calendar_data.events),
                "location_status": context.location.status,
                "error": context.calendar_data.error,
                "timestamp_utc": datetime.now(timezone.utc).isoformat(),
            }
        )

    @application.get("/api/calendars")
    async def list_calendars(request: Request) -> dict[str, Any]:
        return _calendars_payload(_get_context(request))

    @application.post("/api/calendars/{calendar_id}/toggle")
    async def toggle_calendar(request: Request, calendar_id: str) -> dict[str, Any]:
        context = _get_context(request)
        calendar_data = context.calendar_data
        if all(calendar.id != calendar_id for calendar in calendar_data.calendars):
            raise HTTPException(status_code=404, detail="Unknown calendar")

        calendar_data.toggle_calendar(calendar_id)
        if calendar_data.current_range is not None:
            await calendar_data.refresh_events(_request_token(request), calendar_data.current_range)
        return _calendars_payload(context)

    @application.get("/api/view")
    async def calendar_view(
        request: Request,
        view: CalendarView | None = None,
        anchor: date | None = None,
    ) -> dict[str, Any]:
        context = _get_context(request)
        settings = context.settings
        calendar_data = context.calendar_data
        active_view: CalendarView = view or settings.yaml.ui.default_view
        first_day = settings.yaml.ui.first_day_of_week
        anchor_day = _parse_anchor(anchor, settings)
        today = datetime.now(settings.timezone)

        date_range = view_range(active_view, anchor_day, first_day)
        if calendar_data.needs_refresh(date_range):
            await calendar_data.refresh_events(_request_token(request), date_range)
        events = calendar_data.events_for_range(date_range)

        payload: dict[str, Any] = {
            "view": active_view,
            "anchor": anchor_day.date().isoformat(),
            "label": toolbar_label(active_view, anchor_day, first_day),
            "range": _range_payload(date_range),
            "prev_anchor": shift_anchor(active_view, anchor_day, "prev").date().isoformat(),
            "next_anchor": shift_anchor(active_view, anchor_day, "next").date().isoformat(),
            "hour_height_px": settings.yaml.ui.hour_height_px,
            "loading": calendar_data.loading_events,
            "error": calendar_data.error,
            "location": _location_payload(context),
        }
        if active_view == "week":
            payload["days"] = _week_payload(context, date_range, events, today)
        else:
            payload["weeks"] = _month_payload(context, anchor_day, events, today)
        return payload

    @application.post("/api/drafts")
    async def create_draft(request: Request, body: DraftRequest) -> dict[str, Any]:
        context = _get_context(request)
        calendar_id = body.calendar_id or next(iter(context.calendar_data.selected_calendar_ids), None)
        if not calendar_id:
            raise HTTPException(status_code=422, detail="No calendar selected")

        day = datetime.combine(body.day, time.min, tzinfo=context.settings.timezone)
        draft = new_draft(calendar_id, day, body.clicked_minutes)
        return draft.model_dump(mode="json")

    @application.post("/api/events", status_code=201)
    async def create_event(request: Request, body: EventForm) -> dict[str, Any]:
        context = _get_context(request)
        try:
            draft = parse_draft_form(
                calendar_id=body.calendar_id,
                title=body.title,
                is_all_day=body.is_all_day,
                start_value=body.start,
                end_value=body.end,
                zone=context.settings.timezone,
                location=body.location,
                description=body.description,
            )
            await context.calendar_data.create_event(_request_token(request), draft)
        except InvalidEventError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except CalendarProviderError as exc:
            raise _provider_http_error(exc) from exc
        return {"draft": draft.model_dump(mode="json"), "events": len(context.calendar_data.events)}

    @application.put("/api/events/{calendar_id}/{event_id}")
    async def update_event(
        request: Request,
        calendar_id: str,
        event_id: str,
        body: EventForm,
    ) -> dict[str, Any]:
        context = _get_context(request)
        try:
            draft = parse_draft_form(
                calendar_id=calendar_id,
                title=body.title,
                is_all_day=body.is_all_day,
                start_value=body.start,
                end_value=body.end,
                zone=context.settings.timezone,
                location=body.location,
                description=body.description,
                event_id=f"{calendar_id}-{event_id}",
                external_id=event_id,
            )
            await context.calendar_data.update_event(_request_token(request), draft)
        except InvalidEventError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except CalendarProviderError as exc:
            raise _provider_http_error(exc) from exc
        return {"draft": draft.model_dump(mode="json"), "events": len(context.calendar_data.events)}

    @application.delete("/api/events/{calendar_id}/{event_id}")
    async def delete_event(request: Request, calendar_id: str, event_id: str) -> dict[str, Any]:
        context = _get_context(request)
        try:
            await context.calendar_data.delete_event(_request_token(request), calendar_id, event_id)
        except CalendarProviderError as exc:
            raise _provider_http_error(exc) from exc
        return {"deleted": f"{calendar_id}-{event_id}", "events": len(context.calendar_data.events)}

    @application.post("/api/drag")
    async def drag_event(request: Request, body: DragRequest) -> dict[str, Any]:
        context = _get_context(request)
        event = context.calendar_data.find_event(body.event_id)
        if event is None:
            raise HTTPException(status_code=404, detail="Unknown event")

        state = begin_drag(event, body.origin_y)
        if isinstance(state, Idle):
            raise HTTPException(status_code=409, detail="Only single-day timed events can be dragged")

        hour_height = body.hour_height or context.settings.yaml.ui.hour_height_px
        outcome = cancel(state) if body.cancelled else release(state, body.pointer_y, hour_height)
        if not isinstance(outcome, Committed):
            result: dict[str, Any] = {"outcome": "cancelled", "as_click": outcome.as_click, "delta_minutes": 0}
            if outcome.as_click:
                result["draft"] = draft_from_event(event).model_dump(mode="json")
            return result

        draft = draft_from_event(event).model_copy(
            update={"timing": TimedTiming(start=outcome.start, end=outcome.end)}
        )
        try:
            await context.calendar_data.update_event(_request_token(request), draft)
        except InvalidEventError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except CalendarProviderError as exc:
            raise _provider_http_error(exc) from exc
        return {
            "outcome": "committed",
            "as_click": False,
            "delta_minutes": outcome.delta_minutes,
            "start": outcome.start.isoformat(),
            "end": outcome.end.isoformat(),
        }

    @application.get("/api/location")
    async def get_location(request: Request) -> dict[str, Any]:
        return _location_payload(_get_context(request))

    @application.put("/api/location")
    async def set_location(request: Request, body: LocationUpdate) -> dict[str, Any]:
        context = _get_context(request)
        if context.location.set_manual_location(body.lat, body.lon, body.label) is None:
            raise HTTPException(status_code=422, detail=context.location.error)
        return _location_payload(context)

    @application.get("/api/colors/text")
    async def text_color(background: str | None = Query(default=None)) -> dict[str, Any]:
        return {"background": background, "text_color": text_color_for_background(background)}


app = create_app()

