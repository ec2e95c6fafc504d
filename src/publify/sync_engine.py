"""External calendar sync engine: connection state, import, export and reconcile."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Collection

from .core.events import Event, EventOrigin
from .core.ids import UuidIdProvider
from .core.sync import (
    AuthError,
    CalendarInfo,
    ConflictResolution,
    Connection,
    SyncAction,
    SyncError,
    SyncInProgressError,
    SyncLogEntry,
    SyncStatus,
    event_to_remote,
    remote_to_event,
)
from .ports import CalendarSyncProvider, IdProvider

logger = logging.getLogger(__name__)


@dataclass
class _LegResult:
    """Counters for one import or export pass."""

    events: list[Event] = field(default_factory=list)
    processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    unavailable: bool = False
    stale: bool = False

    @property
    def status(self) -> SyncStatus:
        if self.unavailable:
            return SyncStatus.ERROR
        if self.failed and self.processed == 0:
            return SyncStatus.ERROR
        if self.failed and self.failed >= self.processed:
            return SyncStatus.ERROR
        if self.failed or self.errors:
            return SyncStatus.PARTIAL
        return SyncStatus.SUCCESS


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a bidirectional pass. `log` is None when the pass was skipped."""

    log: SyncLogEntry | None
    imported: list[Event] = field(default_factory=list)


class SyncEngine:
    """
    Sync engine for one external calendar connection.

    Never mutates the event repository: imports return mapped events for the
    caller to merge. Provider failures are logged and recorded in the sync
    log instead of being raised, except for `connect()` which raises AuthError.
    Only one operation runs at a time; results that arrive after
    `disconnect()` are discarded.
    """

    def __init__(
        self,
        provider: CalendarSyncProvider,
        id_provider: IdProvider | None = None,
        clock: Callable[[], datetime] | None = None,
        timeout: float = 30.0,
        window_past_days: int = 30,
        window_future_days: int = 90,
        target_calendar_id: str | None = None,
    ):
        self._provider = provider
        self._ids = id_provider or UuidIdProvider()
        self._clock = clock or datetime.now
        self._timeout = timeout
        self._window_past = timedelta(days=window_past_days)
        self._window_future = timedelta(days=window_future_days)
        self._target_calendar_id = target_calendar_id
        self._connection = Connection()
        self._logs: list[SyncLogEntry] = []
        self._in_flight = False
        self._generation = 0
        # local event id -> (calendar id, remote id) for events pushed by this engine
        self._export_links: dict[str, tuple[str, str]] = {}

    # ============== State ==============

    @property
    def connection(self) -> Connection:
        return self._connection.copy()

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    @property
    def last_sync_at(self) -> datetime | None:
        return self._connection.last_sync_at

    def sync_logs(self, limit: int = 10) -> list[SyncLogEntry]:
        """Most recent log entries first."""
        return self._logs[:limit]

    def linked_external_id(self, event_id: str) -> str | None:
        """Remote id of a local event exported by this engine."""
        link = self._export_links.get(event_id)
        return link[1] if link else None

    # ============== Internals ==============

    @asynccontextmanager
    async def _exclusive(self):
        if self._in_flight:
            raise SyncInProgressError("Another sync operation is already running")
        self._in_flight = True
        try:
            yield
        finally:
            self._in_flight = False

    async def _call(self, fn, *args):
        """Run a blocking provider call off the loop, bounded by the timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self._timeout)
        except SyncError:
            raise
        except asyncio.TimeoutError as e:
            raise SyncError(f"Provider call timed out after {self._timeout}s") from e
        except Exception as e:
            raise SyncError(str(e) or e.__class__.__name__) from e

    def _append_log(
        self,
        action: SyncAction,
        status: SyncStatus,
        processed: int = 0,
        created: int = 0,
        updated: int = 0,
        failed: int = 0,
        errors: list[str] | None = None,
    ) -> SyncLogEntry:
        entry = SyncLogEntry(
            id=self._ids.new_id("log"),
            action=action,
            status=status,
            timestamp=self._clock(),
            events_processed=processed,
            events_created=created,
            events_updated=updated,
            events_failed=failed,
            errors=tuple(errors or ()),
        )
        self._logs.insert(0, entry)
        return entry

    def _log_leg(self, action: SyncAction, leg: _LegResult) -> SyncLogEntry:
        status = leg.status
        return self._append_log(
            action,
            status,
            processed=0 if status is SyncStatus.ERROR and leg.unavailable else leg.processed,
            created=leg.created,
            updated=leg.updated,
            failed=leg.failed,
            errors=leg.errors,
        )

    def _default_calendar_id(self) -> str:
        return self._target_calendar_id or self._connection.primary_calendar_id or "primary"

    # ============== Connection ==============

    async def connect(self) -> Connection:
        """
        Authenticate and load the calendar list.

        Raises AuthError when the provider rejects the credentials and
        SyncError for other provider failures. Only the primary calendar
        starts selected.
        """
        async with self._exclusive():
            generation = self._generation
            try:
                account = await self._call(self._provider.authenticate)
            except AuthError as e:
                logger.warning(f"External calendar rejected authentication: {e}")
                raise
            calendars = await self._call(self._provider.list_calendars)

            if generation != self._generation:
                logger.info("Connection reset while connecting; discarding result")
                return self.connection

            self._connection = Connection(
                is_connected=True,
                account=account,
                sync_enabled=True,
                available_calendars=[replace(c, selected=c.primary) for c in calendars],
            )
            logger.info(f"Connected to external calendar as {account} ({len(calendars)} calendars)")
            return self.connection

    async def disconnect(self) -> None:
        """Reset to the initial disconnected state. Merged events and export links are kept."""
        self._generation += 1
        self._connection = Connection()
        logger.info("Disconnected from external calendar")

    async def fetch_calendars(self) -> list[CalendarInfo]:
        """Refresh the calendar list, keeping selections by id. No-op when disconnected."""
        if not self._connection.is_connected:
            return []
        try:
            async with self._exclusive():
                generation = self._generation
                try:
                    calendars = await self._call(self._provider.list_calendars)
                except SyncError as e:
                    logger.warning(f"Failed to refresh calendars: {e}")
                    return self.connection.available_calendars
                if generation != self._generation:
                    return []
                selected = set(self._connection.selected_calendar_ids)
                self._connection.available_calendars = [
                    replace(c, selected=c.id in selected) for c in calendars
                ]
        except SyncInProgressError as e:
            logger.warning(f"Calendar refresh skipped: {e}")
        return self.connection.available_calendars

    def select_calendars(self, calendar_ids: Collection[str]) -> list[CalendarInfo]:
        """Select exactly the given calendars for import and export."""
        wanted = set(calendar_ids)
        self._connection.available_calendars = [
            replace(c, selected=c.id in wanted) for c in self._connection.available_calendars
        ]
        return self.connection.available_calendars

    # ============== Import / export legs ==============

    async def _run_import(self, start: datetime, end: datetime, known: set[str]) -> _LegResult:
        leg = _LegResult()
        if not self._connection.is_connected:
            leg.unavailable = True
            leg.errors.append("Not connected to the external calendar")
            return leg

        calendar_ids = self._connection.selected_calendar_ids
        generation = self._generation
        exported = {remote_id for _, remote_id in self._export_links.values()}
        seen: set[str] = set()
        failed_calendars = 0

        for calendar_id in calendar_ids:
            try:
                remote_events = await self._call(self._provider.list_events, [calendar_id], start, end)
            except SyncError as e:
                logger.warning(f"Import from calendar {calendar_id} failed: {e}")
                leg.errors.append(f"{calendar_id}: {e}")
                failed_calendars += 1
                continue

            if generation != self._generation:
                leg.stale = True
                return leg

            now = self._clock()
            for remote in remote_events:
                # Our own exports come back on import; they are local events already
                if remote.id in exported or remote.id in seen:
                    continue
                seen.add(remote.id)
                leg.processed += 1
                leg.events.append(remote_to_event(remote, now))
                if remote.id in known:
                    leg.updated += 1
                else:
                    leg.created += 1

        if calendar_ids and failed_calendars == len(calendar_ids):
            leg.unavailable = True
        return leg

    async def _run_export(self, events: list[Event], calendar_id: str | None) -> _LegResult:
        leg = _LegResult()
        if not self._connection.is_connected:
            leg.unavailable = True
            leg.errors.append("Not connected to the external calendar")
            return leg

        target = calendar_id or self._default_calendar_id()
        generation = self._generation

        for event in events:
            if event.origin is not EventOrigin.LOCAL:
                logger.warning(f"Not exporting {event.id}: origin is {event.origin.value}")
                continue

            leg.processed += 1
            link = self._export_links.get(event.id)
            external_id = event.external_id or (link[1] if link else None)
            event_calendar = link[0] if link else target

            try:
                remote_id = await self._call(
                    self._provider.upsert_event,
                    event_calendar,
                    event_to_remote(event, event_calendar, external_id),
                )
            except SyncError as e:
                logger.warning(f"Export of {event.id} failed: {e}")
                leg.failed += 1
                leg.errors.append(f"Error exporting event {event.id}: {e}")
                continue

            if generation != self._generation:
                leg.stale = True
                return leg

            self._export_links[event.id] = (event_calendar, remote_id)
            if external_id:
                leg.updated += 1
            else:
                leg.created += 1

        return leg

    # ============== Public sync operations ==============

    async def import_events(
        self,
        start: datetime,
        end: datetime,
        known_external_ids: Collection[str] = (),
    ) -> list[Event]:
        """
        Fetch remote events in [start, end] from the selected calendars.

        Returns mapped events (origin=external_sync) for the caller to merge.
        `known_external_ids` only splits the created/updated counters.
        """
        try:
            async with self._exclusive():
                leg = await self._run_import(start, end, set(known_external_ids))
                if leg.stale:
                    logger.info("Connection reset during import; discarding results")
                    return []
                entry = self._log_leg(SyncAction.IMPORT, leg)
                if entry.status is SyncStatus.ERROR:
                    logger.warning(f"Import failed: {'; '.join(leg.errors)}")
                    return []
                self._connection.last_sync_at = self._clock()
                logger.info(f"Imported {leg.processed} events ({entry.status.value})")
                return leg.events
        except SyncInProgressError as e:
            logger.warning(f"Import skipped: {e}")
            return []

    async def export_events(self, events: list[Event], calendar_id: str | None = None) -> int:
        """
        Push local events to the external calendar.

        Events already linked to a remote copy are updated rather than
        created again. Returns the number of events pushed.
        """
        try:
            async with self._exclusive():
                leg = await self._run_export(list(events), calendar_id)
                if leg.stale:
                    logger.info("Connection reset during export; discarding results")
                    return 0
                entry = self._log_leg(SyncAction.EXPORT, leg)
                if entry.status is not SyncStatus.SUCCESS:
                    logger.warning(f"Export finished with status {entry.status.value}")
                return leg.created + leg.updated
        except SyncInProgressError as e:
            logger.warning(f"Export skipped: {e}")
            return 0

    async def sync_bidirectional(
        self,
        local_events: list[Event],
        known_external_ids: Collection[str] = (),
    ) -> SyncResult:
        """
        Import the recent window, then export local events not linked yet.

        Writes one aggregated log entry: partial when one leg failed, error
        when both did.
        """
        try:
            async with self._exclusive():
                now = self._clock()
                imported = await self._run_import(
                    now - self._window_past,
                    now + self._window_future,
                    set(known_external_ids),
                )
                if imported.stale:
                    logger.info("Connection reset during sync; discarding results")
                    return SyncResult(log=None)

                pending = [
                    e
                    for e in local_events
                    if e.origin is EventOrigin.LOCAL and not e.external_id and e.id not in self._export_links
                ]
                exported = await self._run_export(pending, None)
                if exported.stale:
                    logger.info("Connection reset during sync; discarding results")
                    return SyncResult(log=None)

                statuses = {imported.status, exported.status}
                if statuses == {SyncStatus.ERROR}:
                    status = SyncStatus.ERROR
                elif statuses == {SyncStatus.SUCCESS}:
                    status = SyncStatus.SUCCESS
                else:
                    status = SyncStatus.PARTIAL

                import_ok = imported.status is not SyncStatus.ERROR
                entry = self._append_log(
                    SyncAction.SYNC,
                    status,
                    processed=(imported.processed if import_ok else 0) + exported.processed,
                    created=(imported.created if import_ok else 0) + exported.created,
                    updated=(imported.updated if import_ok else 0) + exported.updated,
                    failed=exported.failed,
                    errors=imported.errors + exported.errors,
                )
                if self._connection.is_connected:
                    self._connection.last_sync_at = self._clock()
                logger.info(
                    f"Sync finished ({status.value}): {entry.events_processed} processed, "
                    f"{entry.events_created} created, {entry.events_updated} updated"
                )
                return SyncResult(log=entry, imported=imported.events if import_ok else [])
        except SyncInProgressError as e:
            logger.warning(f"Sync skipped: {e}")
            return SyncResult(log=None)

    async def resolve_conflict(
        self,
        event: Event,
        resolution: ConflictResolution | str,
    ) -> Event | None:
        """
        Settle a UI-surfaced conflict for one linked event.

        keep_local pushes the local version over the remote one and returns
        it; keep_google fetches the remote version and returns it mapped, for
        the caller to merge. Returns None when the conflict could not be
        resolved.
        """
        resolution = ConflictResolution(resolution)
        link = self._export_links.get(event.id)
        external_id = event.external_id or (link[1] if link else None)
        if not external_id:
            logger.warning(f"Event {event.id} is not linked to the external calendar")
            return None

        try:
            async with self._exclusive():
                if not self._connection.is_connected:
                    self._append_log(
                        SyncAction.SYNC, SyncStatus.ERROR, errors=["Not connected to the external calendar"]
                    )
                    return None

                calendar_id = event.external_calendar_id or (link[0] if link else self._default_calendar_id())
                generation = self._generation
                try:
                    if resolution is ConflictResolution.KEEP_LOCAL:
                        await self._call(
                            self._provider.upsert_event,
                            calendar_id,
                            event_to_remote(event, calendar_id, external_id),
                        )
                        kept = event
                    else:
                        now = self._clock()
                        remotes = await self._call(
                            self._provider.list_events,
                            [calendar_id],
                            min(event.start_at, now - self._window_past),
                            max(event.end_at, now + self._window_future),
                        )
                        remote = next((r for r in remotes if r.id == external_id), None)
                        if remote is None:
                            raise SyncError(f"Remote event {external_id} not found")
                        kept = remote_to_event(remote, now)
                except SyncError as e:
                    logger.warning(f"Conflict resolution for {event.id} failed: {e}")
                    self._append_log(SyncAction.SYNC, SyncStatus.ERROR, failed=1, errors=[str(e)])
                    return None

                if generation != self._generation:
                    return None

                self._append_log(SyncAction.SYNC, SyncStatus.SUCCESS, processed=1, updated=1)
                logger.info(f"Resolved conflict for {event.id} with {resolution.value}")
                return kept
        except SyncInProgressError as e:
            logger.warning(f"Conflict resolution skipped: {e}")
            return None
