"""Pointer-drag rescheduling as an explicit state machine.

``Idle -> Dragging -> Committed | Cancelled``. Clamp bounds are computed once
when the drag starts and travel with the ``Dragging`` state. States are
immutable; every transition returns a new one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from .dates import start_of_day
from .minutes import MINUTES_IN_DAY, round_half_up, round_to_step
from .models import ONE_MILLISECOND, CalendarEvent

SNAP_MINUTES = 15


@dataclass(frozen=True, slots=True)
class DragBounds:
    min_delta: int
    max_delta: int

    def clamp(self, delta_minutes: int) -> int:
        return max(self.min_delta, min(self.max_delta, delta_minutes))


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class Dragging:
    event: CalendarEvent
    origin_y: float
    bounds: DragBounds
    delta_minutes: int = 0

    @property
    def event_id(self) -> str:
        return self.event.id


@dataclass(frozen=True, slots=True)
class Committed:
    event: CalendarEvent
    delta_minutes: int
    start: datetime
    end: datetime

    @property
    def event_id(self) -> str:
        return self.event.id


@dataclass(frozen=True, slots=True)
class Cancelled:
    event: CalendarEvent
    as_click: bool

    @property
    def event_id(self) -> str:
        return self.event.id


def _minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def spans_single_day(event: CalendarEvent) -> bool:
    local_end = event.end.astimezone(event.start.tzinfo)
    return event.start.date() == (local_end - ONE_MILLISECOND).date()


def can_drag(event: CalendarEvent) -> bool:
    return not event.is_all_day and spans_single_day(event)


def drag_bounds(event: CalendarEvent) -> DragBounds:
    local_end = event.end.astimezone(event.start.tzinfo)
    offset = _minutes_between(start_of_day(event.start), event.start)
    duration = _minutes_between(event.start, local_end)
    return DragBounds(
        min_delta=math.ceil(-offset),
        max_delta=math.floor(MINUTES_IN_DAY - duration - offset),
    )


def quantize_minutes(delta_y: float, hour_height: float) -> int:
    """Convert a vertical pixel displacement into minutes snapped to 15."""
    if hour_height <= 0:
        raise ValueError("hour_height must be > 0")
    raw_minutes = round_half_up(delta_y * 60 / hour_height)
    return round_to_step(raw_minutes, SNAP_MINUTES)


def begin_drag(event: CalendarEvent, origin_y: float) -> Dragging | Idle:
    if not can_drag(event):
        return Idle()
    return Dragging(event=event, origin_y=origin_y, bounds=drag_bounds(event))


def move(state: Dragging, pointer_y: float, hour_height: float) -> Dragging:
    delta = state.bounds.clamp(quantize_minutes(pointer_y - state.origin_y, hour_height))
    if delta == state.delta_minutes:
        return state
    return replace(state, delta_minutes=delta)


def release(state: Dragging, pointer_y: float, hour_height: float) -> Committed | Cancelled:
    final = move(state, pointer_y, hour_height)
    if final.delta_minutes == 0:
        return Cancelled(event=state.event, as_click=True)
    shift = timedelta(minutes=final.delta_minutes)
    return Committed(
        event=state.event,
        delta_minutes=final.delta_minutes,
        start=state.event.start + shift,
        end=state.event.end + shift,
    )


def cancel(state: Dragging) -> Cancelled:
    return Cancelled(event=state.event, as_click=False)
