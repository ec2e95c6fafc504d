"""Tests for the external calendar sync engine."""

import asyncio
import time
from datetime import datetime, timedelta

import pytest

from publify.adapters.memory_calendar import InMemoryCalendarProvider
from publify.core.events import EventFormData, EventOrigin
from publify.core.sync import (
    AuthError,
    CalendarInfo,
    ConflictResolution,
    RemoteEvent,
    SyncAction,
    SyncError,
    SyncStatus,
)
from publify.sync_engine import SyncEngine
from publify.workflows import import_into, sync_now


class SlowProvider(InMemoryCalendarProvider):
    def __init__(self, delay: float, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay

    def list_events(self, calendar_ids, start, end):
        time.sleep(self.delay)
        return super().list_events(calendar_ids, start, end)


class FlakyProvider(InMemoryCalendarProvider):
    """Fails for one calendar and, optionally, for every write."""

    def __init__(self, broken_calendar: str = "", fail_writes: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.broken_calendar = broken_calendar
        self.fail_writes = fail_writes

    def list_events(self, calendar_ids, start, end):
        if self.broken_calendar in calendar_ids:
            raise SyncError(f"{self.broken_calendar} unavailable")
        return super().list_events(calendar_ids, start, end)

    def upsert_event(self, calendar_id, event):
        if self.fail_writes:
            raise SyncError("write rejected")
        return super().upsert_event(calendar_id, event)


@pytest.fixture
def calendars():
    return [
        CalendarInfo(id="primary", name="Me", primary=True),
        CalendarInfo(id="team", name="Team"),
    ]


@pytest.fixture
def remote_event():
    def _make(remote_id="g-1", title="Podcast interview", start=datetime(2024, 6, 12, 15), calendar_id="primary"):
        return RemoteEvent(
            id=remote_id,
            calendar_id=calendar_id,
            title=title,
            start=start,
            end=start + timedelta(hours=1),
        )

    return _make


@pytest.fixture
def provider(calendars, remote_event):
    return InMemoryCalendarProvider(calendars=calendars, events=[remote_event()])


@pytest.fixture
def make_engine(clock, ids):
    def _make(provider, **kwargs):
        return SyncEngine(provider, id_provider=ids, clock=clock, **kwargs)

    return _make


@pytest.fixture
def engine(make_engine, provider):
    return make_engine(provider)


@pytest.fixture
def window(now):
    return now - timedelta(days=30), now + timedelta(days=90)


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_selects_primary_only(self, engine):
        connection = await engine.connect()

        assert connection.is_connected
        assert connection.account == "author@example.com"
        assert connection.selected_calendar_ids == ["primary"]

    @pytest.mark.asyncio
    async def test_connect_rejected(self, engine, provider):
        provider.authorized = False
        with pytest.raises(AuthError):
            await engine.connect()
        assert not engine.is_connected

    @pytest.mark.asyncio
    async def test_connection_is_a_copy(self, engine):
        await engine.connect()
        engine.connection.available_calendars.clear()
        assert len(engine.connection.available_calendars) == 2

    @pytest.mark.asyncio
    async def test_disconnect_resets_state(self, engine):
        await engine.connect()
        await engine.disconnect()
        assert not engine.connection.is_connected
        assert engine.connection.available_calendars == []

    @pytest.mark.asyncio
    async def test_select_and_refresh_calendars(self, engine, provider):
        await engine.connect()
        engine.select_calendars(["team"])
        provider.calendars.append(CalendarInfo(id="launches", name="Launches"))

        calendars = await engine.fetch_calendars()

        assert [c.id for c in calendars] == ["primary", "team", "launches"]
        assert engine.connection.selected_calendar_ids == ["team"]

    @pytest.mark.asyncio
    async def test_fetch_calendars_disconnected(self, engine):
        assert await engine.fetch_calendars() == []


class TestImport:
    @pytest.mark.asyncio
    async def test_import_maps_remote_events(self, engine, window, now):
        await engine.connect()
        events = await engine.import_events(*window)

        assert len(events) == 1
        assert events[0].id == "external-g-1"
        assert events[0].origin is EventOrigin.EXTERNAL_SYNC
        assert events[0].external_calendar_id == "primary"
        assert events[0].synced_at == now
        assert engine.last_sync_at == now

        log = engine.sync_logs()[0]
        assert log.action is SyncAction.IMPORT
        assert log.status is SyncStatus.SUCCESS
        assert log.events_processed == 1
        assert log.events_created == 1

    @pytest.mark.asyncio
    async def test_import_twice_keeps_one_event(self, engine, provider, repo, window, remote_event):
        await engine.connect()
        await import_into(repo, engine, *window)
        provider.add_event(remote_event(title="Podcast interview (rescheduled)"))

        merged = await import_into(repo, engine, *window)

        imported = [e for e in repo.events if e.external_id == "g-1"]
        assert len(imported) == 1
        assert imported[0].id == "external-g-1"
        assert imported[0].title == "Podcast interview (rescheduled)"
        assert merged.updated == 1
        second_log = engine.sync_logs()[0]
        assert second_log.events_processed > 0
        assert second_log.events_updated == 1

    @pytest.mark.asyncio
    async def test_import_disconnected_logs_error(self, engine, window):
        assert await engine.import_events(*window) == []

        log = engine.sync_logs()[0]
        assert log.status is SyncStatus.ERROR
        assert log.events_processed == 0

    @pytest.mark.asyncio
    async def test_provider_failure_is_logged_not_raised(self, engine, provider, window):
        await engine.connect()
        provider.fail_with = RuntimeError("network down")

        assert await engine.import_events(*window) == []

        log = engine.sync_logs()[0]
        assert log.status is SyncStatus.ERROR
        assert "network down" in log.errors[0]
        assert engine.last_sync_at is None

    @pytest.mark.asyncio
    async def test_one_failing_calendar_is_partial(self, make_engine, calendars, remote_event, window):
        provider = FlakyProvider(broken_calendar="team", calendars=calendars, events=[remote_event()])
        engine = make_engine(provider)
        await engine.connect()
        engine.select_calendars(["primary", "team"])

        events = await engine.import_events(*window)

        assert [e.external_id for e in events] == ["g-1"]
        assert engine.sync_logs()[0].status is SyncStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_timeout_becomes_error_log(self, make_engine, calendars, window):
        engine = make_engine(SlowProvider(0.3, calendars=calendars), timeout=0.05)
        await engine.connect()

        assert await engine.import_events(*window) == []
        log = engine.sync_logs()[0]
        assert log.status is SyncStatus.ERROR
        assert "timed out" in log.errors[0]

    @pytest.mark.asyncio
    async def test_concurrent_import_is_rejected(self, make_engine, calendars, remote_event, window):
        engine = make_engine(SlowProvider(0.05, calendars=calendars, events=[remote_event()]))
        await engine.connect()

        first, second = await asyncio.gather(engine.import_events(*window), engine.import_events(*window))

        assert len(first) == 1
        assert second == []
        assert len(engine.sync_logs()) == 1
        assert not engine.is_busy

    @pytest.mark.asyncio
    async def test_results_after_disconnect_are_discarded(self, make_engine, calendars, remote_event, window):
        engine = make_engine(SlowProvider(0.1, calendars=calendars, events=[remote_event()]))
        await engine.connect()

        task = asyncio.create_task(engine.import_events(*window))
        await asyncio.sleep(0.02)
        await engine.disconnect()

        assert await task == []
        assert engine.sync_logs() == []


class TestExport:
    @pytest.mark.asyncio
    async def test_export_then_update(self, engine, provider, repo):
        await engine.connect()
        event = repo.create(EventFormData(title="Launch Day", start_at=datetime(2024, 6, 20, 9)))

        assert await engine.export_events([event]) == 1
        remote_id = engine.linked_external_id(event.id)
        assert provider.events[remote_id].title == "Launch Day"

        renamed = repo.update(event.id, title="Launch Day (moved)")
        assert await engine.export_events([renamed]) == 1

        assert engine.linked_external_id(event.id) == remote_id
        assert provider.events[remote_id].title == "Launch Day (moved)"
        assert len(provider.events) == 2
        log = engine.sync_logs()[0]
        assert (log.events_created, log.events_updated) == (0, 1)

    @pytest.mark.asyncio
    async def test_non_local_events_are_not_exported(self, engine, make_event):
        await engine.connect()
        external = make_event(origin=EventOrigin.EXTERNAL_SYNC, external_id="g-9")
        assert await engine.export_events([external]) == 0

    @pytest.mark.asyncio
    async def test_export_to_configured_calendar(self, make_engine, provider, repo):
        engine = make_engine(provider, target_calendar_id="team")
        await engine.connect()
        event = repo.create(EventFormData(title="Team sync", start_at=datetime(2024, 6, 20, 9)))

        await engine.export_events([event])

        assert provider.upserts[0][0] == "team"

    @pytest.mark.asyncio
    async def test_failed_writes_logged(self, make_engine, calendars, repo):
        engine = make_engine(FlakyProvider(fail_writes=True, calendars=calendars))
        await engine.connect()
        event = repo.create(EventFormData(title="Launch", start_at=datetime(2024, 6, 20, 9)))

        assert await engine.export_events([event]) == 0
        log = engine.sync_logs()[0]
        assert log.status is SyncStatus.ERROR
        assert log.events_failed == 1


class TestSyncBidirectional:
    @pytest.mark.asyncio
    async def test_imports_and_exports(self, engine, provider, repo):
        await engine.connect()
        local = repo.create(EventFormData(title="Launch Day", start_at=datetime(2024, 6, 20, 9)))

        result, merged = await sync_now(repo, engine)

        assert result.log.action is SyncAction.SYNC
        assert result.log.status is SyncStatus.SUCCESS
        assert merged.created == 1
        assert repo.get("external-g-1") is not None
        assert engine.linked_external_id(local.id) in provider.events

    @pytest.mark.asyncio
    async def test_second_sync_does_not_echo_exports(self, engine, repo):
        await engine.connect()
        repo.create(EventFormData(title="Launch Day", start_at=datetime(2024, 6, 20, 9)))
        await sync_now(repo, engine)

        result, merged = await sync_now(repo, engine)

        assert [e.external_id for e in result.imported] == ["g-1"]
        assert merged.created == 0
        assert len(repo.user_events) == 2
        assert result.log.events_created == 0

    @pytest.mark.asyncio
    async def test_reconnect_keeps_exported_links(self, engine, provider, repo):
        await engine.connect()
        local = repo.create(EventFormData(title="Launch Day", start_at=datetime(2024, 6, 20, 9)))
        await sync_now(repo, engine)
        remote_id = engine.linked_external_id(local.id)

        await engine.disconnect()
        await engine.connect()
        result, merged = await sync_now(repo, engine)

        assert len(provider.events) == 2
        assert engine.linked_external_id(local.id) == remote_id
        assert merged.created == 0
        assert [e.title for e in repo.user_events] == ["Launch Day", "Podcast interview"]
        assert result.log.events_created == 0

    @pytest.mark.asyncio
    async def test_failed_export_leg_is_partial(self, make_engine, calendars, remote_event, repo):
        engine = make_engine(FlakyProvider(fail_writes=True, calendars=calendars, events=[remote_event()]))
        await engine.connect()
        repo.create(EventFormData(title="Launch", start_at=datetime(2024, 6, 20, 9)))

        result, merged = await sync_now(repo, engine)

        assert result.log.status is SyncStatus.PARTIAL
        assert result.log.errors
        assert merged.created == 1
        assert engine.last_sync_at is not None

    @pytest.mark.asyncio
    async def test_disconnected_sync_is_error(self, engine, repo):
        result, _ = await sync_now(repo, engine)
        assert result.log.status is SyncStatus.ERROR


class TestResolveConflict:
    @pytest.mark.asyncio
    async def test_keep_local_pushes_local_version(self, engine, provider, repo):
        await engine.connect()
        event = repo.create(EventFormData(title="Launch", start_at=datetime(2024, 6, 20, 9)))
        await engine.export_events([event])
        remote_id = engine.linked_external_id(event.id)
        provider.events[remote_id].title = "Changed remotely"

        kept = await engine.resolve_conflict(event, ConflictResolution.KEEP_LOCAL)

        assert kept == event
        assert provider.events[remote_id].title == "Launch"

    @pytest.mark.asyncio
    async def test_keep_google_returns_remote_version(self, engine, provider, repo, window):
        await engine.connect()
        await import_into(repo, engine, *window)
        provider.events["g-1"].title = "Changed remotely"

        kept = await engine.resolve_conflict(repo.get("external-g-1"), "keep_google")

        assert kept.title == "Changed remotely"
        assert kept.external_id == "g-1"
        assert engine.sync_logs()[0].status is SyncStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_unlinked_event(self, engine, repo):
        await engine.connect()
        event = repo.create(EventFormData(title="Local only", start_at=datetime(2024, 6, 20, 9)))
        assert await engine.resolve_conflict(event, ConflictResolution.KEEP_LOCAL) is None


class TestSyncLogs:
    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, engine, window):
        await engine.connect()
        for _ in range(3):
            await engine.import_events(*window)

        logs = engine.sync_logs(limit=2)
        assert len(logs) == 2
        assert logs[0].id == "log-3"
        assert logs[1].id == "log-2"
