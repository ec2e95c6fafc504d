"""Tests for system event templates and the generator."""

import calendar
from datetime import date, datetime, time

import pytest

from publify.core.events import EventKind, EventOrigin, EventPriority, EventStatus
from publify.core.generator import generate_for_year, generate_for_years, system_event_id
from publify.core.templates import (
    SYSTEM_EVENT_TEMPLATES,
    FixedOffsetFromDate,
    NthWeekdayOfMonth,
    SystemEventTemplate,
    nth_weekday_of_month,
    resolve_template_date,
    templates_by_key,
)


@pytest.fixture
def catalog():
    return templates_by_key(SYSTEM_EVENT_TEMPLATES)


def _by_key(events):
    return {e.system_key: e for e in events}


class TestNthWeekdayOfMonth:
    def test_second_sunday_of_may_2025(self):
        assert nth_weekday_of_month(2025, 5, calendar.SUNDAY, 2) == date(2025, 5, 11)

    def test_last_monday(self):
        assert nth_weekday_of_month(2024, 2, calendar.MONDAY, -1) == date(2024, 2, 26)

    def test_missing_fifth_occurrence(self):
        assert nth_weekday_of_month(2024, 2, calendar.MONDAY, 5) is None


class TestResolveTemplateDate:
    def test_fixed_date(self, catalog):
        assert resolve_template_date(catalog["christmas"], 2024, catalog) == date(2024, 12, 25)

    def test_black_friday_follows_thanksgiving(self, catalog):
        assert resolve_template_date(catalog["thanksgiving_us"], 2024, catalog) == date(2024, 11, 28)
        assert resolve_template_date(catalog["black_friday"], 2024, catalog) == date(2024, 11, 29)
        assert resolve_template_date(catalog["cyber_monday"], 2024, catalog) == date(2024, 12, 2)

    def test_black_friday_2025(self, catalog):
        assert resolve_template_date(catalog["black_friday"], 2025, catalog) == date(2025, 11, 28)

    def test_feb_29_only_in_leap_years(self):
        leap = SystemEventTemplate(key="leap", name="Leap Day", description="", month=2, day=29)
        catalog = {"leap": leap}
        assert resolve_template_date(leap, 2024, catalog) == date(2024, 2, 29)
        assert resolve_template_date(leap, 2023, catalog) is None

    def test_unknown_base_resolves_to_none(self):
        orphan = SystemEventTemplate(
            key="orphan", name="Orphan", description="", month=1, dynamic_rule=FixedOffsetFromDate("missing", 1)
        )
        assert resolve_template_date(orphan, 2024, {"orphan": orphan}) is None

    def test_cycle_resolves_to_none(self):
        a = SystemEventTemplate(key="a", name="A", description="", month=1, dynamic_rule=FixedOffsetFromDate("b", 1))
        b = SystemEventTemplate(key="b", name="B", description="", month=1, dynamic_rule=FixedOffsetFromDate("a", 1))
        assert resolve_template_date(a, 2024, {"a": a, "b": b}) is None

    def test_template_needs_exactly_one_date_source(self):
        with pytest.raises(ValueError):
            SystemEventTemplate(key="bad", name="Bad", description="", month=1)
        with pytest.raises(ValueError):
            SystemEventTemplate(
                key="bad",
                name="Bad",
                description="",
                month=1,
                day=1,
                dynamic_rule=NthWeekdayOfMonth(1, calendar.MONDAY, 1),
            )


class TestGenerateForYear:
    def test_mothers_day_2025(self):
        event = _by_key(generate_for_year(2025))["mothers_day"]
        assert event.start_at == datetime(2025, 5, 11, 0, 0)
        assert event.end_at == datetime.combine(date(2025, 5, 11), time(23, 59, 59))
        assert event.all_day

    def test_only_enabled_templates(self):
        events = generate_for_year(2024)
        enabled = [t for t in SYSTEM_EVENT_TEMPLATES if t.enabled]
        assert len(events) == len(enabled)
        assert "thanksgiving_us" not in _by_key(events)
        assert "st_patricks_day" not in _by_key(events)

    def test_event_shape(self):
        event = _by_key(generate_for_year(2024))["black_friday"]
        assert event.id == system_event_id("black_friday", 2024) == "system-black_friday-2024"
        assert event.kind is EventKind.SYSTEM
        assert event.origin is EventOrigin.LOCAL
        assert event.status is EventStatus.PENDING
        assert event.priority is EventPriority.URGENT
        assert event.campaign_type == "commercial"
        assert event.reminders

    def test_idempotent(self):
        assert generate_for_year(2024) == generate_for_year(2024)

    def test_ids_unique(self):
        events = generate_for_years(2024, 2)
        assert len({e.id for e in events}) == len(events)

    def test_generate_for_years_covers_both_years(self):
        years = {e.start_at.year for e in generate_for_years(2024, 2)}
        assert years == {2024, 2025}

    def test_unresolvable_template_skipped(self):
        leap = SystemEventTemplate(key="leap", name="Leap Day", description="", month=2, day=29)
        assert generate_for_year(2023, [leap]) == []
        assert len(generate_for_year(2024, [leap])) == 1
