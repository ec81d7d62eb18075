"""
Sync engine state, run reports, exceptions and deferred-call scheduling.

SyncState is owned by ActivitySyncEngine; callers only ever see copies.
"""
import asyncio
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence

# ── Exceptions ────────────────────────────────────────────────────────────────


class SyncError(RuntimeError):
    """Base class for sync engine failures."""


class FetchError(SyncError):
    """Raised when the paginated load from the store fails.

    The message is the underlying transport message.
    """


class SyncBatchError(SyncError):
    """One failed upsert batch. Logged and reported, never raised by sync()."""

    def __init__(self, batch_number: int, row_count: int, message: str):
        super().__init__(f"batch {batch_number} ({row_count} rows): {message}")
        self.batch_number = batch_number
        self.row_count = row_count
        self.message = message


# ── State ─────────────────────────────────────────────────────────────────────

SKIP_INITIAL_LOAD = "initial_load"
SKIP_EMPTY = "empty"
SKIP_UNCHANGED = "unchanged"


@dataclass
class SyncState:
    is_loading: bool = False
    is_syncing: bool = False
    # Armed while a load is in flight and for a cooldown after it finishes,
    # so data that was just loaded is not written straight back. A fresh
    # session starts armed until its first load completes.
    initial_load_in_progress: bool = True
    last_synced_hash: str = ""
    error: Optional[str] = None


@dataclass
class SyncReport:
    """Outcome of one sync() call."""

    rows_received: int = 0
    rows_unique: int = 0
    rows_synced: int = 0
    batches_total: int = 0
    batch_errors: List[SyncBatchError] = field(default_factory=list)
    skipped: Optional[str] = None
    error: Optional[str] = None

    @property
    def duplicates_removed(self) -> int:
        if not self.rows_unique:
            return 0
        return self.rows_received - self.rows_unique

    @property
    def status(self) -> str:
        if self.skipped:
            return "skipped"
        if self.error:
            return "error"
        if self.batch_errors:
            if len(self.batch_errors) == self.batches_total:
                return "error"
            return "partial"
        return "success"


def content_hash(records: Sequence[Any]) -> str:
    """Stable digest of a dataset, used to detect unchanged re-syncs."""
    payload = json.dumps(list(records), sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


# ── Deferred calls ────────────────────────────────────────────────────────────


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Deferrer(Protocol):
    """Schedules a plain callback after a delay; tests swap in a fake clock."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        ...


class LoopDeferrer:
    """Deferrer backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)
