"""Audit trail of sync runs against the activity store."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncLog(SQLModel, table=True):
    """One row per sync() call that got past the skip rules."""

    id: Optional[int] = Field(default=None, primary_key=True)
    started_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    finished_at: Optional[datetime] = None
    # running -> success | partial (some batches failed) | error
    status: str = "running"
    rows_received: int = 0
    rows_synced: int = 0
    duplicates_removed: int = 0
    batches_failed: int = 0
    error_message: Optional[str] = None
