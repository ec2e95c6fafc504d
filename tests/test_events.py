"""Tests for the core event model."""

from datetime import date, datetime, time, timedelta

import pytest

from publify.core.events import (
    EventKind,
    EventOrigin,
    EventPriority,
    Tag,
    clamp_end,
    end_of_day,
    start_of_day,
    unique_tags,
)


class TestEvent:
    def test_format_time_regular(self, make_event):
        event = make_event(start=datetime(2024, 6, 3, 14, 30))
        assert event.format_time() == "14:30"

    def test_format_time_all_day(self, make_event):
        event = make_event(all_day=True)
        assert event.format_time() == "All day"

    def test_duration(self, make_event):
        event = make_event(hours=1.5)
        assert event.duration() == timedelta(minutes=90)

    def test_local_user_event_is_editable(self, make_event):
        assert make_event().is_editable

    @pytest.mark.parametrize(
        "kind, origin",
        [
            (EventKind.SYSTEM, EventOrigin.LOCAL),
            (EventKind.USER, EventOrigin.EXTERNAL_SYNC),
            (EventKind.USER, EventOrigin.BOOK_TASK),
        ],
    )
    def test_other_events_are_read_only(self, make_event, kind, origin):
        assert not make_event(kind=kind, origin=origin).is_editable


class TestOverlaps:
    def test_event_inside_range(self, make_event):
        event = make_event(start=datetime(2024, 6, 5, 10, 0))
        assert event.overlaps(datetime(2024, 6, 3), datetime(2024, 6, 9, 23, 59, 59))

    def test_event_spanning_range(self, make_event):
        event = make_event(start=datetime(2024, 5, 30), hours=24 * 10)
        assert event.overlaps(datetime(2024, 6, 3), datetime(2024, 6, 4))

    def test_event_ending_inside_range(self, make_event):
        event = make_event(start=datetime(2024, 6, 1), hours=48)
        assert event.overlaps(datetime(2024, 6, 3), datetime(2024, 6, 9))

    def test_event_before_range(self, make_event):
        event = make_event(start=datetime(2024, 6, 1, 10, 0))
        assert not event.overlaps(datetime(2024, 6, 3), datetime(2024, 6, 9))

    def test_same_day_matches_whole_day(self, make_event):
        # 18:00 event still belongs to a range covering only the morning
        event = make_event(start=datetime(2024, 6, 3, 18, 0))
        assert event.overlaps(datetime(2024, 6, 3, 8, 0), datetime(2024, 6, 3, 9, 0))


class TestHelpers:
    def test_start_and_end_of_day(self):
        assert start_of_day(date(2024, 6, 1)) == datetime(2024, 6, 1, 0, 0)
        assert end_of_day(datetime(2024, 6, 1, 15, 0)) == datetime.combine(date(2024, 6, 1), time(23, 59, 59))

    def test_clamp_missing_end_defaults_to_start(self):
        start = datetime(2024, 6, 1)
        assert clamp_end(start, None) == (start, False)

    def test_clamp_end_before_start(self):
        start = datetime(2024, 6, 5)
        assert clamp_end(start, datetime(2024, 6, 1)) == (start, True)

    def test_clamp_keeps_valid_end(self):
        start, end = datetime(2024, 6, 1), datetime(2024, 6, 2)
        assert clamp_end(start, end) == (end, False)

    def test_unique_tags_keeps_first(self):
        tags = [Tag("promo", "Promo"), Tag("launch", "Launch"), Tag("promo", "Other")]
        assert [t.name for t in unique_tags(tags)] == ["Promo", "Launch"]

    def test_priority_rank_order(self):
        ranks = [p.rank for p in (EventPriority.LOW, EventPriority.MEDIUM, EventPriority.HIGH, EventPriority.URGENT)]
        assert ranks == sorted(ranks)
