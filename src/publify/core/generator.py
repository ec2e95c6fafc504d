"""Expand system event templates into dated events."""

import logging
from datetime import datetime

from .events import Event, EventKind, EventOrigin, EventStatus, end_of_day, start_of_day
from .templates import SYSTEM_EVENT_TEMPLATES, SystemEventTemplate, resolve_template_date, templates_by_key

logger = logging.getLogger(__name__)


def system_event_id(key: str, year: int) -> str:
    return f"system-{key}-{year}"


def generate_for_year(
    year: int,
    templates: tuple[SystemEventTemplate, ...] | list[SystemEventTemplate] = SYSTEM_EVENT_TEMPLATES,
) -> list[Event]:
    """
    Generate the system events of one year.

    Pure function - no I/O, no clock. Calling it twice for the same year
    yields equal events, so callers re-derive instead of caching. Templates
    whose date cannot be resolved for `year` are skipped.
    """
    catalog = templates_by_key(templates)
    stamp = datetime(year, 1, 1)
    events = []

    for template in templates:
        if not template.enabled:
            continue

        resolved = resolve_template_date(template, year, catalog)
        if resolved is None:
            logger.debug(f"Skipping template {template.key}: no date in {year}")
            continue

        events.append(
            Event(
                id=system_event_id(template.key, year),
                kind=EventKind.SYSTEM,
                title=template.name,
                start_at=start_of_day(resolved),
                end_at=end_of_day(resolved),
                origin=EventOrigin.LOCAL,
                all_day=True,
                status=EventStatus.PENDING,
                priority=template.priority,
                description=template.description,
                tags=list(template.default_tags),
                reminders=list(template.default_reminders),
                system_key=template.key,
                campaign_type=template.campaign_type,
                campaign_window_days=template.campaign_window_days,
                recommended_niches=list(template.recommended_niches),
                created_at=stamp,
                updated_at=stamp,
            )
        )

    return events


def generate_for_years(
    first_year: int,
    count: int = 2,
    templates: tuple[SystemEventTemplate, ...] | list[SystemEventTemplate] = SYSTEM_EVENT_TEMPLATES,
) -> list[Event]:
    """Concatenate `count` consecutive years starting at `first_year`."""
    events = []
    for year in range(first_year, first_year + count):
        events.extend(generate_for_year(year, templates))
    return events
