"""Composition root and shared workflows between the CLI and long-running jobs.

Each build_* function wires one component from the config; the async
helpers move events between the repository and the sync engine.
"""

import logging
from datetime import datetime

from .adapters.file_preferences import FilePreferenceStore
from .adapters.google_calendar import GoogleCalendarProvider
from .adapters.kanban_api import KanbanApiAdapter
from .adapters.notifiers import LoggingNotifier, TelegramNotifier
from .config import DATA_DIR, Config
from .core.events import Event, EventOrigin
from .core.filters import CalendarFilters
from .core.sync import ConflictResolution
from .ports import BookTaskSource, CalendarSyncProvider, Notifier, PreferenceStore
from .reminders import ReminderScheduler
from .repository import EventRepository, MergeResult
from .sync_engine import SyncEngine, SyncResult

logger = logging.getLogger(__name__)

FILTERS_KEY = "calendar_filters"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: Config, debug: bool = False) -> None:
    level = logging.DEBUG if debug else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(format=LOG_FORMAT, level=level)


# ============== Builders ==============


def build_book_task_source(config: Config) -> BookTaskSource | None:
    if not config.kanban_api_base:
        return None
    return KanbanApiAdapter(config.kanban_api_base, config.kanban_api_token)


def build_repository(config: Config, book_task_source: BookTaskSource | None = None) -> EventRepository:
    """Repository with book tasks already pulled from the configured source."""
    repository = EventRepository(book_task_source=book_task_source or build_book_task_source(config))
    repository.refresh_book_tasks()
    return repository


def build_calendar_provider(config: Config) -> GoogleCalendarProvider:
    return GoogleCalendarProvider(
        config_folder=config.google_config_folder,
        client_secret_file=config.google_client_secret_file,
        timezone=config.timezone,
    )


def build_sync_engine(config: Config, provider: CalendarSyncProvider | None = None) -> SyncEngine:
    return SyncEngine(
        provider or build_calendar_provider(config),
        timeout=config.sync_timeout_seconds,
        window_past_days=config.sync_window_past_days,
        window_future_days=config.sync_window_future_days,
        target_calendar_id=config.google_target_calendar or None,
    )


def build_notifier(config: Config) -> Notifier:
    """Telegram when a bot token and chats are configured, else in-app logging."""
    if config.telegram_bot_token and config.telegram_chat_ids:
        return TelegramNotifier.from_token(config.telegram_bot_token, config.telegram_chat_ids)
    return LoggingNotifier()


def build_reminder_scheduler(
    config: Config,
    repository: EventRepository,
    notifier: Notifier | None = None,
) -> ReminderScheduler:
    return ReminderScheduler(
        lambda: repository.events,
        notifier or build_notifier(config),
        interval_seconds=config.reminder_interval_seconds,
        window_minutes=config.reminder_window_minutes,
    )


def build_preference_store() -> FilePreferenceStore:
    return FilePreferenceStore(DATA_DIR / "preferences")


# ============== Sync workflows ==============


async def import_into(
    repository: EventRepository,
    engine: SyncEngine,
    start: datetime,
    end: datetime,
) -> MergeResult:
    """Import remote events in [start, end] and merge them into the repository."""
    imported = await engine.import_events(start, end, repository.external_ids())
    return repository.import_external(imported)


async def export_local(repository: EventRepository, engine: SyncEngine, calendar_id: str | None = None) -> int:
    return await engine.export_events(repository.local_events(), calendar_id)


async def sync_now(repository: EventRepository, engine: SyncEngine) -> tuple[SyncResult, MergeResult]:
    """Bidirectional sync; imported events are merged before returning."""
    result = await engine.sync_bidirectional(repository.local_events(), repository.external_ids())
    merged = repository.import_external(result.imported)
    return result, merged


async def resolve_conflict(
    repository: EventRepository,
    engine: SyncEngine,
    event_id: str,
    resolution: ConflictResolution | str,
) -> Event | None:
    """Settle a conflict and apply the winning version locally."""
    event = repository.get(event_id)
    if event is None:
        logger.warning(f"Cannot resolve conflict: no event {event_id}")
        return None

    kept = await engine.resolve_conflict(event, resolution)
    if kept is None or ConflictResolution(resolution) is ConflictResolution.KEEP_LOCAL:
        return kept

    if event.origin is EventOrigin.EXTERNAL_SYNC:
        repository.import_external([kept])
        return repository.get(event_id)

    return repository.update(
        event_id,
        title=kept.title,
        description=kept.description,
        start_at=kept.start_at,
        end_at=kept.end_at,
        all_day=kept.all_day,
    )


# ============== Preferences ==============


def load_saved_filters(store: PreferenceStore) -> CalendarFilters | None:
    data = store.load(FILTERS_KEY)
    if data is None:
        return None
    try:
        return CalendarFilters.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Ignoring unreadable saved filters: {e}")
        return None


def save_filters(store: PreferenceStore, filters: CalendarFilters) -> None:
    store.save(FILTERS_KEY, filters.to_dict())


def clear_filters(store: PreferenceStore) -> None:
    store.delete(FILTERS_KEY)
