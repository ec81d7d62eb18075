"""
ActivitySyncEngine: keeps the dashboard's working set and the store in step.

Flow:
  fetch_all():  page through the store (date desc) -> display records
                -> working set; the loaded data becomes the sync baseline.
  sync(rows):   display records -> storage rows -> dedupe on the composite
                key -> sequential upsert batches.
  merge(rows):  an upload replaces the working set and is synced, now or
                after a delay if a load is still settling.

Skip rules for sync():
  - a load is in flight or just finished (cooldown guard armed)
  - nothing to send
  - the rows hash to the same value as the last synced/loaded dataset

Failure policy: a failed page aborts the load and surfaces the error; a
failed upsert batch is logged and the remaining batches still run. Upserts
are idempotent per composite key, so the next sync of the same rows retries
them.

sync() calls are serialized with an asyncio.Lock; a second caller waits and
is then usually skipped by the unchanged-hash rule.
"""
import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from fieldops.config import Settings, get_settings
from fieldops.mapping.field_mapper import to_display, to_stored
from fieldops.models.activity import CONFLICT_TARGET, ActivityRecord, StoredActivity
from fieldops.models.sync import SyncLog
from fieldops.store.base import ActivityStore, StoreError
from fieldops.sync.dedupe import dedupe
from fieldops.sync.state import (
    SKIP_EMPTY,
    SKIP_INITIAL_LOAD,
    SKIP_UNCHANGED,
    Cancellable,
    Deferrer,
    FetchError,
    LoopDeferrer,
    SyncBatchError,
    SyncReport,
    SyncState,
    content_hash,
)

logger = logging.getLogger(__name__)


class ActivitySyncEngine:
    """Owns the activity working set and all sync state for one session."""

    def __init__(
        self,
        store: ActivityStore,
        settings: Optional[Settings] = None,
        deferrer: Optional[Deferrer] = None,
        audit_engine=None,
    ):
        """
        Args:
            store: Remote activity store (Supabase or SQL).
            settings: Page/batch sizes and cooldown delays. Defaults to
                      get_settings().
            deferrer: Schedules the cooldown release and deferred syncs.
                      Defaults to the running event loop.
            audit_engine: Optional SQLAlchemy engine; when given, each sync
                          run that reaches the store is recorded as a SyncLog.
        """
        self._store = store
        self._settings = settings or get_settings()
        self._deferrer = deferrer or LoopDeferrer()
        self._audit_engine = audit_engine

        self._state = SyncState()
        self._data: List[ActivityRecord] = []
        self._sync_lock = asyncio.Lock()
        self._cooldown_handle: Optional[Cancellable] = None
        self._deferred_handles: List[Cancellable] = []
        self._tasks: Set[asyncio.Future] = set()

    # ─── Read-only views ──────────────────────────────────────────────────────

    @property
    def data(self) -> List[ActivityRecord]:
        return list(self._data)

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def state(self) -> SyncState:
        """A copy of the current state; mutating it has no effect."""
        return dataclasses.replace(self._state)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "is_loading": self._state.is_loading,
            "is_syncing": self._state.is_syncing,
            "error": self._state.error,
            "rows": len(self._data),
        }

    # ─── Operations ───────────────────────────────────────────────────────────

    async def fetch_all(self) -> List[ActivityRecord]:
        """
        Load every row from the store into the working set.

        Returns:
            The new working set (display records).

        Raises:
            FetchError: if any page fails. The working set is left as it
                was and the message is also kept on `error`.
        """
        self._state.is_loading = True
        self._state.error = None
        self._arm_load_guard()
        logger.info("Fetching activities from store...")

        try:
            rows = await self._fetch_pages()
        except StoreError as exc:
            self._state.error = str(exc)
            logger.error("Failed to fetch activities: %s", exc)
            raise FetchError(str(exc)) from exc
        finally:
            self._state.is_loading = False
            self._schedule_guard_release()

        data = [to_display(row) for row in rows]
        self._data = data
        # Replaying what was just loaded must not trigger a write
        self._state.last_synced_hash = content_hash(data)
        if data:
            logger.info("Received %d rows.", len(data))
        else:
            logger.info("No activities found in store.")
        return self.data

    async def sync(self, records: Iterable[ActivityRecord]) -> SyncReport:
        """
        Upsert display records into the store, deduplicated by composite key.

        Returns:
            SyncReport. `skipped` is set when nothing was sent; failed
            batches are listed in `batch_errors`.
        """
        records = list(records)
        async with self._sync_lock:
            return await self._sync_locked(records)

    async def merge(self, records: Iterable[ActivityRecord]) -> Optional[SyncReport]:
        """
        Replace the working set with uploaded records and sync them.

        The upload always wins over whatever was loaded before. If a load is
        still settling, the sync is deferred by `merge_delay_seconds`.

        Returns:
            The SyncReport when synced immediately, None when deferred.
        """
        records = list(records)
        logger.info("Replacing working set with %d uploaded records.", len(records))
        self._data = records

        if not self._state.initial_load_in_progress:
            self._state.last_synced_hash = ""
            return await self.sync(records)

        delay = self._settings.merge_delay_seconds
        logger.info("Upload during load; sync deferred by %.1fs.", delay)
        handle = self._deferrer.call_later(
            delay, lambda: self._start_deferred_sync(records)
        )
        self._deferred_handles.append(handle)
        return None

    def set_data(self, records: Iterable[ActivityRecord]) -> None:
        """Replace the working set without syncing."""
        self._data = list(records)

    async def drain(self) -> None:
        """Wait for deferred syncs that have already started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel pending deferred work and wait for running syncs."""
        if self._cooldown_handle is not None:
            self._cooldown_handle.cancel()
            self._cooldown_handle = None
        for handle in self._deferred_handles:
            handle.cancel()
        self._deferred_handles.clear()
        await self.drain()

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _fetch_pages(self) -> List[StoredActivity]:
        page_size = self._settings.fetch_page_size
        rows: List[StoredActivity] = []
        page = 0
        while True:
            batch = await self._store.fetch_page(page * page_size, page_size)
            if not batch:
                break
            rows.extend(batch)
            page += 1
            if len(batch) < page_size:
                break
        return rows

    def _arm_load_guard(self) -> None:
        if self._cooldown_handle is not None:
            self._cooldown_handle.cancel()
            self._cooldown_handle = None
        self._state.initial_load_in_progress = True

    def _schedule_guard_release(self) -> None:
        self._cooldown_handle = self._deferrer.call_later(
            self._settings.load_cooldown_seconds, self._release_load_guard
        )

    def _release_load_guard(self) -> None:
        self._cooldown_handle = None
        self._state.initial_load_in_progress = False
        logger.info("Ready for sync.")

    def _start_deferred_sync(self, records: List[ActivityRecord]) -> None:
        task = asyncio.ensure_future(self._deferred_sync(records))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deferred_sync(self, records: List[ActivityRecord]) -> None:
        self._state.last_synced_hash = ""
        await self.sync(records)

    async def _sync_locked(self, records: List[ActivityRecord]) -> SyncReport:
        if self._state.initial_load_in_progress:
            logger.info("Sync blocked - initial load in progress.")
            return SyncReport(skipped=SKIP_INITIAL_LOAD)
        if not records:
            logger.info("Nothing to sync.")
            return SyncReport(skipped=SKIP_EMPTY)
        digest = content_hash(records)
        if digest == self._state.last_synced_hash:
            logger.info("Data identical to last sync - skipping.")
            return SyncReport(skipped=SKIP_UNCHANGED)

        report = SyncReport(rows_received=len(records))
        self._state.is_syncing = True
        logger.info("Syncing %d records...", len(records))

        log = None
        try:
            log = self._create_sync_log(report)
            unique = dedupe(to_stored(r) for r in records)
            report.rows_unique = len(unique)
            logger.info(
                "After dedup: %d unique records (%d duplicates removed)",
                report.rows_unique,
                report.duplicates_removed,
            )
            await self._upsert_batches(unique, report)
            # Updated even if batches failed; a fresh merge() forces a retry
            self._state.last_synced_hash = digest
            logger.info("Sync complete.")
        except Exception as exc:
            # Hash stays stale so an identical sync is retried later
            logger.exception("Sync failed")
            self._state.error = str(exc)
            report.error = str(exc)
        finally:
            self._state.is_syncing = False
            self._finish_sync_log(log, report)
        return report

    async def _upsert_batches(self, rows: List[StoredActivity], report: SyncReport) -> None:
        batch_size = self._settings.sync_batch_size
        for number, start in enumerate(range(0, len(rows), batch_size), start=1):
            batch = rows[start:start + batch_size]
            report.batches_total += 1
            try:
                await self._store.upsert(
                    batch, on_conflict=CONFLICT_TARGET, ignore_duplicates=False
                )
            except StoreError as exc:
                error = SyncBatchError(number, len(batch), str(exc))
                report.batch_errors.append(error)
                logger.warning("Batch %d failed: %s", number, exc)
            else:
                report.rows_synced += len(batch)
                logger.info("Batch %d sent.", number)

    def last_sync_log(self) -> Optional[SyncLog]:
        """Most recent SyncLog row in the audit database, or None."""
        if self._audit_engine is None:
            return None
        try:
            with Session(self._audit_engine) as s:
                return s.exec(select(SyncLog).order_by(SyncLog.started_at.desc())).first()
        except SQLAlchemyError as exc:
            logger.error("Could not read sync log: %s", exc)
            return None

    def _record_audit_error(self, report: SyncReport, exc: SQLAlchemyError) -> None:
        logger.error("Could not write sync log: %s", exc)
        message = f"sync log: {exc}"
        report.error = f"{report.error}; {message}" if report.error else message
        self._state.error = report.error

    def _create_sync_log(self, report: SyncReport) -> Optional[SyncLog]:
        """Insert a running SyncLog row; audit failures never block the sync."""
        if self._audit_engine is None:
            return None
        log = SyncLog(started_at=datetime.utcnow(), status="running")
        try:
            with Session(self._audit_engine) as s:
                s.add(log)
                s.commit()
                s.refresh(log)
        except SQLAlchemyError as exc:
            self._record_audit_error(report, exc)
            return None
        return log

    def _finish_sync_log(self, log: Optional[SyncLog], report: SyncReport) -> None:
        if log is None:
            return
        try:
            with Session(self._audit_engine) as s:
                db_log = s.get(SyncLog, log.id)
                db_log.status = report.status
                db_log.finished_at = datetime.utcnow()
                db_log.rows_received = report.rows_received
                db_log.rows_synced = report.rows_synced
                db_log.duplicates_removed = report.duplicates_removed
                db_log.batches_failed = len(report.batch_errors)
                db_log.error_message = report.error or (
                    "; ".join(str(e) for e in report.batch_errors) or None
                )
                s.add(db_log)
                s.commit()
        except SQLAlchemyError as exc:
            self._record_audit_error(report, exc)
