"""FastAPI application factory."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlmodel import SQLModel

from fieldops.api.routes import admin, atividades, auth
from fieldops.sync.engine import ActivitySyncEngine
from fieldops.sync.state import FetchError

logger = logging.getLogger(__name__)


def create_app(
    sync_engine: Optional[ActivitySyncEngine] = None,
    db_engine=None,
    load_on_startup: bool = True,
) -> FastAPI:
    """
    Build and return the FastAPI app.

    Args:
        sync_engine: Engine to serve; built from settings when omitted.
        db_engine: SQLAlchemy engine for the sync audit log; defaults to
                   get_engine().
        load_on_startup: Run fetch_all() once when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from fieldops.db.engine import get_engine
        from fieldops.store.factory import build_store

        engine = db_engine if db_engine is not None else get_engine()
        # Create tables on startup (idempotent)
        SQLModel.metadata.create_all(engine)

        service = sync_engine or ActivitySyncEngine(build_store(), audit_engine=engine)
        app.state.sync_engine = service
        if load_on_startup:
            try:
                await service.fetch_all()
            except FetchError as exc:
                logger.warning("Initial load failed: %s", exc)
        yield
        await service.close()

    app = FastAPI(
        title="Fieldops API",
        description="Technician activity dashboard backend",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(auth.router, prefix="/auth", tags=["auth"])
    app.include_router(atividades.router, prefix="/atividades", tags=["atividades"])
    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    return app


# Module-level app instance for uvicorn
app = create_app()
