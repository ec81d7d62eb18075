"""Local database: engine for the SQL activity store and the sync audit log."""
from sqlmodel import SQLModel, create_engine

from fieldops.config import get_settings

_engine = None


def _register_tables() -> None:
    # Table classes attach themselves to SQLModel.metadata on import
    from fieldops.models.activity import Atividade  # noqa: F401
    from fieldops.models.sync import SyncLog  # noqa: F401


def get_engine():
    """Engine for DATABASE_URL, built once with all tables created."""
    global _engine
    if _engine is None:
        url = get_settings().database_url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_engine(url, connect_args=connect_args)
        _register_tables()
        SQLModel.metadata.create_all(_engine)
    return _engine
