"""Per-day layout of calendar events.

Timed events are clipped to the day, placed on a 24 hour vertical axis and
packed into columns. Overlapping events are grouped into clusters (sets whose
ranges overlap transitively) and each cluster is colored greedily, which gives
the minimum number of columns for an interval graph. Column widths are
relative to the cluster, so two unrelated clusters on one day both get the
full width.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from .minutes import MINUTES_IN_DAY
from .models import CalendarEvent, DayLayout, EventSegment, day_bounds

MIN_SEGMENT_HEIGHT_PERCENT = 2.0


@dataclass(frozen=True, slots=True)
class ClippedSegment:
    event: CalendarEvent
    start: datetime
    end: datetime
    start_minutes: float
    end_minutes: float

    @property
    def top(self) -> float:
        return self.start_minutes / MINUTES_IN_DAY * 100

    @property
    def height(self) -> float:
        span = (self.end_minutes - self.start_minutes) / MINUTES_IN_DAY * 100
        return max(span, MIN_SEGMENT_HEIGHT_PERCENT)


def _minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def _day_window(day: datetime) -> tuple[datetime, datetime]:
    return day_bounds(day.date(), day.tzinfo)


def event_occurs_on_day(event: CalendarEvent, day: datetime) -> bool:
    day_start, day_end = _day_window(day)
    return event.start <= day_end and event.end >= day_start


def clip_to_day(event: CalendarEvent, day: datetime) -> ClippedSegment | None:
    """Clip a timed event to ``day``; ``None`` when nothing of it is left."""
    day_start, day_end = _day_window(day)
    zone = day_start.tzinfo
    start = max(event.start.astimezone(zone), day_start)
    end = min(event.end.astimezone(zone), day_end)
    if end <= start:
        return None
    return ClippedSegment(
        event=event,
        start=start,
        end=end,
        start_minutes=_minutes_between(day_start, start),
        end_minutes=_minutes_between(day_start, end),
    )


def cluster_segments(segments: Sequence[ClippedSegment]) -> list[tuple[ClippedSegment, ...]]:
    """Split start-sorted segments into maximal overlap clusters."""
    clusters: list[tuple[ClippedSegment, ...]] = []
    current: list[ClippedSegment] = []
    cluster_end = 0.0

    for segment in segments:
        if current and segment.start_minutes < cluster_end:
            current.append(segment)
            cluster_end = max(cluster_end, segment.end_minutes)
            continue
        if current:
            clusters.append(tuple(current))
        current = [segment]
        cluster_end = segment.end_minutes

    if current:
        clusters.append(tuple(current))
    return clusters


def assign_columns(cluster: Sequence[ClippedSegment]) -> list[tuple[ClippedSegment, ...]]:
    """Greedy first-fit column assignment; a column admits a segment once its
    last segment has ended."""
    columns: list[list[ClippedSegment]] = []
    for segment in cluster:
        for column in columns:
            if column[-1].end_minutes <= segment.start_minutes:
                column.append(segment)
                break
        else:
            columns.append([segment])
    return [tuple(column) for column in columns]


def _segments_for_cluster(cluster: Sequence[ClippedSegment]) -> list[EventSegment]:
    columns = assign_columns(cluster)
    column_span = len(columns) or 1
    return [
        EventSegment(
            event=segment.event,
            start=segment.start,
            end=segment.end,
            top=segment.top,
            height=segment.height,
            column=column_index,
            column_span=column_span,
        )
        for column_index, column in enumerate(columns)
        for segment in column
    ]


def event_segments_for_day(events: Iterable[CalendarEvent], day: datetime) -> DayLayout:
    events = list(events)
    all_day = [event for event in events if event.is_all_day and event_occurs_on_day(event, day)]

    clipped = [
        segment
        for segment in (clip_to_day(event, day) for event in events if not event.is_all_day)
        if segment is not None
    ]
    clipped.sort(key=lambda segment: segment.start_minutes)

    timed: list[EventSegment] = []
    for cluster in cluster_segments(clipped):
        timed.extend(_segments_for_cluster(cluster))
    return DayLayout(timed=timed, all_day=all_day)


def month_cell_events(
    events: Iterable[CalendarEvent],
    day: datetime,
    *,
    limit: int = 3,
) -> tuple[list[CalendarEvent], int]:
    """Return the events shown in a month cell and how many were left out."""
    day_events = [event for event in events if event_occurs_on_day(event, day)]
    visible = day_events[: max(limit, 0)]
    return visible, len(day_events) - len(visible)
