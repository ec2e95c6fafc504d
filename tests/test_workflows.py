"""Tests for the composition root and shared workflows."""

from datetime import date, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from publify.adapters.file_preferences import FilePreferenceStore
from publify.adapters.kanban_api import InMemoryBookTaskSource, KanbanApiAdapter
from publify.adapters.memory_calendar import InMemoryCalendarProvider
from publify.adapters.notifiers import LoggingNotifier
from publify.config import Config
from publify.core.book_tasks import BookTask
from publify.core.events import EventFormData, EventPriority
from publify.core.filters import CalendarFilters
from publify.core.sync import RemoteEvent
from publify.sync_engine import SyncEngine
from publify.workflows import (
    FILTERS_KEY,
    build_book_task_source,
    build_notifier,
    build_repository,
    build_sync_engine,
    clear_filters,
    export_local,
    import_into,
    load_saved_filters,
    resolve_conflict,
    save_filters,
)


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def provider():
    return InMemoryCalendarProvider(
        events=[
            RemoteEvent(
                id="g-1",
                calendar_id="primary",
                title="Podcast interview",
                start=datetime(2024, 6, 12, 15),
                end=datetime(2024, 6, 12, 16),
            )
        ]
    )


@pytest.fixture
def engine(provider, clock, ids):
    return SyncEngine(provider, id_provider=ids, clock=clock)


class TestBuilders:
    def test_no_kanban_source_without_base(self, config):
        assert build_book_task_source(config) is None

    def test_kanban_source(self):
        source = build_book_task_source(Config(kanban_api_base="https://kanban.example.com", kanban_api_token="t"))
        assert isinstance(source, KanbanApiAdapter)
        assert source.token == "t"

    def test_repository_pulls_book_tasks(self, config):
        source = InMemoryBookTaskSource([BookTask(id="1", book_id="b", title="Edit", due_date=date(2030, 1, 1))])
        repo = build_repository(config, source)
        assert [e.id for e in repo.book_task_events] == ["book-task-1"]

    def test_logging_notifier_by_default(self, config):
        assert isinstance(build_notifier(config), LoggingNotifier)

    @patch("publify.workflows.TelegramNotifier")
    def test_telegram_notifier_when_configured(self, mock_cls):
        config = Config(telegram_bot_token="123:abc", telegram_chat_ids=[111])
        build_notifier(config)
        mock_cls.from_token.assert_called_once_with("123:abc", [111])

    def test_sync_engine_uses_config(self, provider):
        config = Config(sync_timeout_seconds=5, google_target_calendar="team")
        engine = build_sync_engine(config, provider)
        assert engine._timeout == 5
        assert engine._target_calendar_id == "team"


class TestSyncWorkflows:
    @pytest.mark.asyncio
    async def test_import_into_merges(self, repo, engine, now):
        await engine.connect()
        merged = await import_into(repo, engine, now, now + timedelta(days=30))
        assert merged.created == 1
        assert repo.get("external-g-1").title == "Podcast interview"

    @pytest.mark.asyncio
    async def test_export_local_skips_imported(self, repo, engine, now, provider):
        await engine.connect()
        await import_into(repo, engine, now, now + timedelta(days=30))
        repo.create(EventFormData(title="Launch", start_at=datetime(2024, 6, 20, 9)))

        assert await export_local(repo, engine) == 1
        assert len(provider.upserts) == 1

    @pytest.mark.asyncio
    async def test_resolve_keep_google_updates_external_event(self, repo, engine, provider, now):
        await engine.connect()
        await import_into(repo, engine, now, now + timedelta(days=30))
        provider.events["g-1"].title = "Podcast interview (moved)"

        kept = await resolve_conflict(repo, engine, "external-g-1", "keep_google")

        assert kept.title == "Podcast interview (moved)"
        assert repo.get("external-g-1").title == "Podcast interview (moved)"

    @pytest.mark.asyncio
    async def test_resolve_keep_google_updates_exported_local_event(self, repo, engine, provider):
        await engine.connect()
        event = repo.create(EventFormData(title="Launch", start_at=datetime(2024, 6, 20, 9)))
        await export_local(repo, engine)
        provider.events[engine.linked_external_id(event.id)].title = "Launch (edited in Google)"

        kept = await resolve_conflict(repo, engine, event.id, "keep_google")

        assert kept.id == event.id
        assert repo.get(event.id).title == "Launch (edited in Google)"

    @pytest.mark.asyncio
    async def test_resolve_unknown_event(self, repo, engine):
        assert await resolve_conflict(repo, engine, "nope", "keep_local") is None


class TestSavedFilters:
    def test_round_trip(self, tmp_path):
        store = FilePreferenceStore(tmp_path)
        filters = CalendarFilters(priorities=[EventPriority.URGENT], show_system_events=False)

        save_filters(store, filters)

        assert load_saved_filters(store) == filters
        clear_filters(store)
        assert load_saved_filters(store) is None

    def test_unreadable_filters_ignored(self):
        store = MagicMock()
        store.load.return_value = {"priorities": ["extreme"]}
        assert load_saved_filters(store) is None
        store.load.assert_called_once_with(FILTERS_KEY)
