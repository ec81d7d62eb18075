"""Pick the activity store implementation from settings."""
from typing import Optional

from fieldops.config import Settings, get_settings
from fieldops.store.base import ActivityStore, StoreError


def build_store(settings: Optional[Settings] = None) -> ActivityStore:
    """
    Build the configured store.

    STORE_BACKEND=supabase -> hosted `atividades` table via supabase-py.
    STORE_BACKEND=sql      -> the local SQLModel database (DATABASE_URL).
    """
    settings = settings or get_settings()
    backend = settings.store_backend.lower()

    if backend == "supabase":
        from fieldops.store.supabase_store import SupabaseActivityStore, build_client
        return SupabaseActivityStore(build_client(settings), table=settings.atividades_table)

    if backend == "sql":
        from fieldops.db.engine import get_engine
        from fieldops.store.sql_store import SqlActivityStore
        return SqlActivityStore(get_engine())

    raise StoreError(f"Unknown STORE_BACKEND {settings.store_backend!r}")
