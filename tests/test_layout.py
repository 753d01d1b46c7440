from __future__ import annotations

from datetime import timedelta

import pytest

from daylight_calendar.domain.layout import (
    MIN_SEGMENT_HEIGHT_PERCENT,
    assign_columns,
    clip_to_day,
    cluster_segments,
    event_segments_for_day,
    month_cell_events,
)
from daylight_calendar.domain.models import ONE_MILLISECOND


def test_overlapping_pair_shares_cluster_and_later_event_is_alone(at, make_event):
    day = at(2024, 7, 10)
    events = [
        make_event("a", at(2024, 7, 10, 9), at(2024, 7, 10, 10)),
        make_event("b", at(2024, 7, 10, 9, 30), at(2024, 7, 10, 10, 30)),
        make_event("c", at(2024, 7, 10, 11), at(2024, 7, 10, 12)),
    ]

    layout = event_segments_for_day(events, day)
    placed = {segment.event.external_id: (segment.column, segment.column_span) for segment in layout.timed}

    assert placed == {"a": (0, 2), "b": (1, 2), "c": (0, 1)}
    assert [segment.event.external_id for segment in layout.timed] == ["a", "b", "c"]
    assert layout.all_day == []


def test_segment_geometry_is_percent_of_day(at, make_event):
    layout = event_segments_for_day(
        [make_event("a", at(2024, 7, 10, 6), at(2024, 7, 10, 12))],
        at(2024, 7, 10),
    )
    segment = layout.timed[0]
    assert segment.top == pytest.approx(25.0)
    assert segment.height == pytest.approx(25.0)


def test_short_events_get_minimum_height(at, make_event):
    layout = event_segments_for_day(
        [make_event("ping", at(2024, 7, 10, 8), at(2024, 7, 10, 8, 5))],
        at(2024, 7, 10),
    )
    assert layout.timed[0].height == MIN_SEGMENT_HEIGHT_PERCENT


def test_all_day_event_appears_on_each_included_day_only(at, make_event):
    offsite = make_event(
        "offsite",
        at(2024, 7, 10),
        at(2024, 7, 13) - ONE_MILLISECOND,
        all_day=True,
    )
    for day_number in range(8, 15):
        layout = event_segments_for_day([offsite], at(2024, 7, day_number))
        expected = [offsite] if day_number in (10, 11, 12) else []
        assert layout.all_day == expected
        assert layout.timed == []


def test_multi_day_event_is_clipped_per_day(at, make_event):
    overnight = make_event("night", at(2024, 7, 10, 22), at(2024, 7, 11, 2))

    first = clip_to_day(overnight, at(2024, 7, 10))
    second = clip_to_day(overnight, at(2024, 7, 11))

    assert first is not None and second is not None
    assert first.start == at(2024, 7, 10, 22)
    assert first.end == at(2024, 7, 11) - ONE_MILLISECOND
    assert second.start == at(2024, 7, 11)
    assert second.end == at(2024, 7, 11, 2)
    assert second.start_minutes == 0
    assert clip_to_day(overnight, at(2024, 7, 12)) is None


def test_event_ending_at_midnight_does_not_leak_into_next_day(at, make_event):
    evening = make_event("evening", at(2024, 7, 10, 20), at(2024, 7, 11))
    assert event_segments_for_day([evening], at(2024, 7, 11)).timed == []


def test_touching_events_share_a_column(at, make_event):
    events = [
        make_event("a", at(2024, 7, 10, 9), at(2024, 7, 10, 10)),
        make_event("b", at(2024, 7, 10, 10), at(2024, 7, 10, 11)),
    ]
    layout = event_segments_for_day(events, at(2024, 7, 10))
    assert [(segment.column, segment.column_span) for segment in layout.timed] == [(0, 1), (0, 1)]


def test_columns_never_overlap_and_use_minimum_count(at, make_event):
    day = at(2024, 7, 10)
    spans = [(8, 0, 11, 0), (8, 30, 9, 30), (9, 0, 10, 0), (9, 30, 12, 0), (10, 0, 10, 30), (13, 0, 14, 0)]
    events = [
        make_event(f"e{index}", at(2024, 7, 10, sh, sm), at(2024, 7, 10, eh, em))
        for index, (sh, sm, eh, em) in enumerate(spans)
    ]

    layout = event_segments_for_day(events, day)

    by_column: dict[tuple[int, int], list] = {}
    for segment in layout.timed:
        by_column.setdefault((segment.column_span, segment.column), []).append(segment)
    for column_segments in by_column.values():
        ordered = sorted(column_segments, key=lambda segment: segment.start)
        for earlier, later in zip(ordered, ordered[1:]):
            assert earlier.end <= later.start

    clipped = sorted((clip_to_day(event, day) for event in events), key=lambda segment: segment.start_minutes)
    clusters = cluster_segments(clipped)
    assert [len(cluster) for cluster in clusters] == [5, 1]

    # Maximum simultaneous overlap in the first cluster is three (9:00-9:30).
    assert len(assign_columns(clusters[0])) == 3
    assert {segment.column_span for segment in layout.timed if segment.event.external_id != "e5"} == {3}


def test_degenerate_input_is_ignored(at, make_event):
    outside = make_event("outside", at(2024, 7, 9, 8), at(2024, 7, 9, 9))
    layout = event_segments_for_day([outside], at(2024, 7, 10))
    assert layout.timed == []
    assert layout.all_day == []
    assert event_segments_for_day([], at(2024, 7, 10)).timed == []


def test_layout_accepts_events_in_other_zones(at, make_event):
    from datetime import timezone

    utc_event = make_event(
        "utc",
        at(2024, 7, 10, 9).astimezone(timezone.utc),
        at(2024, 7, 10, 10).astimezone(timezone.utc),
    )
    segment = event_segments_for_day([utc_event], at(2024, 7, 10)).timed[0]
    assert segment.top == pytest.approx(9 / 24 * 100)


def test_month_cell_reports_overflow(at, make_event):
    day = at(2024, 7, 10)
    events = [
        make_event(f"e{hour}", at(2024, 7, 10, hour), at(2024, 7, 10, hour) + timedelta(minutes=30))
        for hour in range(8, 13)
    ]
    visible, overflow = month_cell_events(events, day, limit=3)
    assert [event.external_id for event in visible] == ["e8", "e9", "e10"]
    assert overflow == 2
