"""Activity routes: working set, upload, refresh, sync and dashboard data."""
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel

from fieldops.analysis.logs import filter_logs, page_numbers, paginate, sort_logs
from fieldops.analysis.productivity import technician_productivity
from fieldops.api.deps import get_sync_engine, require_approved
from fieldops.ingest.spreadsheet import SpreadsheetError, read_activity_file
from fieldops.sync.engine import ActivitySyncEngine
from fieldops.sync.state import FetchError, SyncReport

router = APIRouter(dependencies=[Depends(require_approved)])


class ActivityPage(BaseModel):
    items: List[Dict[str, Optional[str]]]
    page: int
    page_size: int
    total: int


class SyncReportResponse(BaseModel):
    status: str
    rows_received: int
    rows_unique: int
    rows_synced: int
    duplicates_removed: int
    batches_total: int
    failed_batches: List[int]
    skipped: Optional[str]
    error: Optional[str]

    @classmethod
    def from_report(cls, report: SyncReport) -> "SyncReportResponse":
        return cls(
            status=report.status,
            rows_received=report.rows_received,
            rows_unique=report.rows_unique,
            rows_synced=report.rows_synced,
            duplicates_removed=report.duplicates_removed,
            batches_total=report.batches_total,
            failed_batches=[e.batch_number for e in report.batch_errors],
            skipped=report.skipped,
            error=report.error,
        )


class UploadResponse(BaseModel):
    filename: str
    rows: int
    deferred: bool
    sync: Optional[SyncReportResponse]


class LastSync(BaseModel):
    status: str
    started_at: datetime
    finished_at: Optional[datetime]
    rows_synced: int
    batches_failed: int
    error_message: Optional[str]


class StatusResponse(BaseModel):
    is_loading: bool
    is_syncing: bool
    error: Optional[str]
    rows: int
    last_sync: Optional[LastSync]


class LogsResponse(BaseModel):
    items: List[Dict[str, Optional[str]]]
    page: int
    total_pages: int
    total_items: int
    first_index: int
    last_index: int
    pages: List[Union[int, str]]


class BarResponse(BaseModel):
    name: str
    full_name: str
    value: int
    total: int
    productivity: float
    color: str


@router.get("", response_model=ActivityPage)
def list_activities(
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    engine: ActivitySyncEngine = Depends(get_sync_engine),
):
    """Current working set, one page at a time."""
    data = engine.data
    start = (page - 1) * page_size
    return ActivityPage(
        items=data[start:start + page_size], page=page, page_size=page_size, total=len(data)
    )


@router.post("/refresh")
async def refresh(engine: ActivitySyncEngine = Depends(get_sync_engine)):
    """Reload everything from the store."""
    if engine.is_loading:
        raise HTTPException(status_code=409, detail="Load already in progress")
    try:
        data = await engine.fetch_all()
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"rows": len(data)}


@router.post("/upload", response_model=UploadResponse)
async def upload(
    file: UploadFile = File(...),
    engine: ActivitySyncEngine = Depends(get_sync_engine),
):
    """Replace the working set with an uploaded spreadsheet and sync it."""
    try:
        records = read_activity_file(file.file, file.filename or "")
    except SpreadsheetError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    report = await engine.merge(records)
    return UploadResponse(
        filename=file.filename or "",
        rows=len(records),
        deferred=report is None,
        sync=SyncReportResponse.from_report(report) if report else None,
    )


@router.post("/sync", response_model=SyncReportResponse)
async def sync_now(engine: ActivitySyncEngine = Depends(get_sync_engine)):
    """Push the current working set to the store."""
    report = await engine.sync(engine.data)
    return SyncReportResponse.from_report(report)


@router.get("/status", response_model=StatusResponse)
def status(engine: ActivitySyncEngine = Depends(get_sync_engine)):
    """Engine flags plus the most recent sync run from the engine's audit log."""
    log = engine.last_sync_log()
    snapshot = engine.snapshot()
    return StatusResponse(
        is_loading=snapshot["is_loading"],
        is_syncing=snapshot["is_syncing"],
        error=snapshot["error"],
        rows=snapshot["rows"],
        last_sync=(
            LastSync(
                status=log.status,
                started_at=log.started_at,
                finished_at=log.finished_at,
                rows_synced=log.rows_synced,
                batches_failed=log.batches_failed,
                error_message=log.error_message,
            )
            if log
            else None
        ),
    )


@router.get("/logs", response_model=LogsResponse)
def logs(
    page: int = Query(1),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    engine: ActivitySyncEngine = Depends(get_sync_engine),
):
    """Records with a log counter, sorted by it, 100 per page."""
    result = paginate(sort_logs(filter_logs(engine.data), order), page)
    return LogsResponse(
        items=result.items,
        page=result.page,
        total_pages=result.total_pages,
        total_items=result.total_items,
        first_index=result.first_index,
        last_index=result.last_index,
        pages=page_numbers(result.page, result.total_pages),
    )


@router.get("/produtividade", response_model=List[BarResponse])
def productivity(engine: ActivitySyncEngine = Depends(get_sync_engine)):
    """One bar per technician, most productive first."""
    return [BarResponse(**asdict(item)) for item in technician_productivity(engine.data)]
