"""Publify CLI - editorial calendar."""

import asyncio
import json
import sys
from datetime import date, datetime, timedelta

import click

from .config import load_config
from .core.events import Event, EventKind, EventOrigin, EventPriority, EventStatus, end_of_day, start_of_day
from .core.filters import (
    CalendarFilters,
    QuickFilter,
    apply_quick_filter,
    has_active_filters,
    month_bounds,
    sort_events_by_start,
    week_bounds,
)
from .core.generator import generate_for_year
from .core.sync import AuthError, SyncError
from .workflows import (
    build_calendar_provider,
    build_preference_store,
    build_reminder_scheduler,
    build_repository,
    build_sync_engine,
    clear_filters,
    configure_logging,
    import_into,
    load_saved_filters,
    save_filters,
    sync_now,
)


@click.group()
@click.version_option(package_name="publify")
def main():
    """Publify - editorial calendar for self-publishers."""
    pass


# ============== Display helpers ==============


def _event_to_dict(e: Event) -> dict:
    return {
        "id": e.id,
        "title": e.title,
        "kind": e.kind.value,
        "origin": e.origin.value,
        "start": e.start_at.isoformat(),
        "end": e.end_at.isoformat(),
        "all_day": e.all_day,
        "status": e.status.value,
        "priority": e.priority.value,
        "tags": [t.name for t in e.tags],
        "book_ids": list(e.book_ids),
    }


def _source_label(e: Event) -> str:
    if e.kind is EventKind.SYSTEM:
        return "system"
    if e.origin is EventOrigin.EXTERNAL_SYNC:
        return "google"
    if e.origin is EventOrigin.BOOK_TASK:
        return "book"
    return "mine"


def _show_events(events: list[Event], as_json: bool, empty_msg: str = "No events.") -> None:
    """Shared event display logic."""
    if as_json:
        click.echo(json.dumps([_event_to_dict(e) for e in events], indent=2))
        return

    if not events:
        click.echo(empty_msg)
        return

    current_date = None
    for event in sort_events_by_start(events):
        event_date = event.start_at.date()
        if event_date != current_date:
            if current_date is not None:
                click.echo()
            click.echo(f"### {event_date.strftime('%A, %B %d')}")
            current_date = event_date

        marker = "!" if event.priority is EventPriority.URGENT else " "
        click.echo(f"  {event.format_time():8} {marker} {event.title} [{_source_label(event)}]")


def _run(coro):
    """Run a coroutine, exiting with an error message on sync failures."""
    try:
        return asyncio.run(coro)
    except AuthError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Run 'publify cal-auth' to (re)connect Google Calendar.", err=True)
        sys.exit(1)
    except SyncError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


async def _import_google(repository, config, start: datetime, end: datetime):
    engine = build_sync_engine(config)
    await engine.connect()
    return await import_into(repository, engine, start, end)


def _calendar_events(start: datetime, end: datetime, google: bool) -> list[Event]:
    config = load_config()
    repository = build_repository(config)
    if google:
        _run(_import_google(repository, config, start, end))
    filters = load_saved_filters(build_preference_store())
    return repository.events_in_range(start, end, filters)


def _parse_day(value: str | None) -> date:
    return date.fromisoformat(value) if value else date.today()


# ============== System events ==============


@main.command("system-events")
@click.option("--year", "-y", type=int, default=None, help="Year to generate (default: current year)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def system_events(year: int | None, as_json: bool):
    """List the publishing calendar's system events for a year."""
    events = generate_for_year(year or date.today().year)
    _show_events(events, as_json, "No system events.")


# ============== Calendar views ==============


@main.group(invoke_without_command=True)
@click.pass_context
def calendar(ctx):
    """Show calendar events."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(calendar_day)


@calendar.command("day")
@click.option("--date", "-d", "target_date", default=None, help="Day to show (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--google", is_flag=True, help="Include Google Calendar events")
def calendar_day(target_date: str | None = None, as_json: bool = False, google: bool = False):
    """Show one day's events."""
    day = _parse_day(target_date)
    events = _calendar_events(start_of_day(day), end_of_day(day), google)
    _show_events(events, as_json, f"No events on {day.strftime('%A, %b %d')}.")


@calendar.command("week")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--google", is_flag=True, help="Include Google Calendar events")
def calendar_week(as_json: bool = False, google: bool = False):
    """Show this week's events (Monday to Sunday)."""
    start, end = week_bounds(date.today())
    events = _calendar_events(start, end, google)
    _show_events(events, as_json, "No events this week.")


@calendar.command("month")
@click.option("--date", "-d", "target_date", default=None, help="Any day of the month (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--google", is_flag=True, help="Include Google Calendar events")
def calendar_month(target_date: str | None = None, as_json: bool = False, google: bool = False):
    """Show a month's events."""
    start, end = month_bounds(_parse_day(target_date))
    events = _calendar_events(start, end, google)
    _show_events(events, as_json, f"No events in {start.strftime('%B %Y')}.")


@calendar.command("upcoming")
@click.option("--count", "-n", type=int, default=5, help="Number of events to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--google", is_flag=True, help="Include Google Calendar events")
def calendar_upcoming(count: int = 5, as_json: bool = False, google: bool = False):
    """Show the next events from now on."""
    config = load_config()
    repository = build_repository(config)
    if google:
        now = datetime.now()
        _run(_import_google(repository, config, now, now + timedelta(days=config.sync_window_future_days)))
    filters = load_saved_filters(build_preference_store())
    _show_events(repository.upcoming(count, filters), as_json, "Nothing coming up.")


@main.command("upcoming-reminders")
@click.option("--within", type=int, default=60, help="Look-ahead window in minutes")
def upcoming_reminders_cmd(within: int):
    """List reminders that will fire soon."""
    config = load_config()
    repository = build_repository(config)
    scheduler = build_reminder_scheduler(config, repository)
    upcoming = scheduler.get_upcoming_reminders(within)

    if not upcoming:
        click.echo(f"No reminders in the next {within} minutes.")
        return

    for item in upcoming:
        click.echo(f"  {item.trigger_time.strftime('%a %H:%M')}  {item.event.title} ({item.reminder.offset_minutes} min before)")


# ============== Google Calendar ==============


@main.command("cal-auth")
def cal_auth():
    """Authenticate with Google Calendar."""
    config = load_config()

    if not config.google_client_secret_file:
        click.echo("GOOGLE_CLIENT_SECRET_FILE not set in publify.conf", err=True)
        sys.exit(1)

    provider = build_calendar_provider(config)
    click.echo(f"Authenticating Google Calendar ({provider.config_folder})")
    if provider.authorize():
        click.echo("  ✓ Token saved")
    else:
        click.echo("  ✗ Authentication failed", err=True)
        sys.exit(1)


@main.command()
def calendars():
    """List the Google calendars available to sync."""
    config = load_config()

    async def _list():
        engine = build_sync_engine(config)
        return await engine.connect()

    connection = _run(_list())
    click.echo(f"Account: {connection.account}")
    for cal in connection.available_calendars:
        marker = "*" if cal.primary else " "
        click.echo(f"  {marker} {cal.name} ({cal.id})")


@main.command()
def sync():
    """Run a two-way sync with Google Calendar."""
    config = load_config()
    repository = build_repository(config)

    async def _sync():
        engine = build_sync_engine(config)
        await engine.connect()
        return await sync_now(repository, engine)

    result, merged = _run(_sync())
    if result.log is None:
        click.echo("Sync skipped.")
        return

    log = result.log
    click.echo(
        f"Sync {log.status.value}: {log.events_processed} processed, "
        f"{log.events_created} created, {log.events_updated} updated, {log.events_failed} failed"
    )
    click.echo(f"Merged locally: {merged.created} new, {merged.updated} changed")
    for error in log.errors:
        click.echo(f"  ✗ {error}", err=True)


# ============== Reminders ==============


@main.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--google", is_flag=True, help="Include Google Calendar events")
def reminders(debug: bool, google: bool):
    """Run the reminder scheduler until interrupted."""
    config = load_config()
    configure_logging(config, debug)

    try:
        repository = build_repository(config)
        scheduler = build_reminder_scheduler(config, repository)
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    async def _serve():
        if google:
            now = datetime.now()
            await _import_google(repository, config, now, now + timedelta(days=1))
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown()

    click.echo("Reminder scheduler running. Press Ctrl+C to stop")
    try:
        _run(_serve())
    except KeyboardInterrupt:
        click.echo("\nReminders stopped.")


# ============== Saved filters ==============


@main.group()
def filters():
    """Manage the default calendar filters."""
    pass


@filters.command("set")
@click.option("--hide-system", is_flag=True, help="Hide system events")
@click.option("--hide-user", is_flag=True, help="Hide your own events")
@click.option("--hide-external", is_flag=True, help="Hide Google Calendar events")
@click.option("--hide-book-tasks", is_flag=True, help="Hide book task events")
@click.option("--search", default="", help="Text to search in title, description and tags")
@click.option("--tag", "tags", multiple=True, help="Tag id (repeatable)")
@click.option("--status", "statuses", multiple=True, type=click.Choice([s.value for s in EventStatus]))
@click.option("--priority", "priorities", multiple=True, type=click.Choice([p.value for p in EventPriority]))
@click.option("--marketplace", "marketplaces", multiple=True, help="Marketplace code, e.g. US (repeatable)")
@click.option("--book", "book_ids", multiple=True, help="Book id (repeatable)")
@click.option("--quick", "quick", multiple=True, type=click.Choice([q.value for q in QuickFilter]))
def filters_set(
    hide_system, hide_user, hide_external, hide_book_tasks, search, tags, statuses, priorities, marketplaces, book_ids, quick
):
    """Save default filters for calendar views."""
    saved = CalendarFilters(
        show_system_events=not hide_system,
        show_user_events=not hide_user,
        show_external_events=not hide_external,
        show_book_task_events=not hide_book_tasks,
        search_query=search,
        tags=list(tags),
        statuses=[EventStatus(s) for s in statuses],
        priorities=[EventPriority(p) for p in priorities],
        marketplaces=[m.upper() for m in marketplaces],
        book_ids=list(book_ids),
    )
    for name in quick:
        saved = apply_quick_filter(saved, QuickFilter(name))

    save_filters(build_preference_store(), saved)
    click.echo("✓ Filters saved")


@filters.command("show")
def filters_show():
    """Show the saved filters."""
    saved = load_saved_filters(build_preference_store())
    if saved is None or not has_active_filters(saved):
        click.echo("No filters saved.")
        return
    click.echo(json.dumps(saved.to_dict(), indent=2))


@filters.command("clear")
def filters_clear():
    """Remove the saved filters."""
    clear_filters(build_preference_store())
    click.echo("✓ Filters cleared")


if __name__ == "__main__":
    main()
