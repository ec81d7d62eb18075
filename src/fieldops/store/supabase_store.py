"""
Supabase-backed activity store.

supabase-py's table API is synchronous; calls run in the default thread pool
executor so they don't block the asyncio event loop.
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from fieldops.config import Settings, get_settings
from fieldops.models.activity import StoredActivity
from fieldops.store.base import StoreError


def build_client(settings: Optional[Settings] = None) -> Client:
    """Create a supabase client from settings (service key for table writes)."""
    settings = settings or get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise StoreError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    return create_client(settings.supabase_url, settings.supabase_service_key)


class SupabaseActivityStore:
    """ActivityStore over the hosted `atividades` table."""

    def __init__(self, client: Client, table: str = "atividades"):
        self._client = client
        self._table = table

    async def _run(self, fn, *args, **kwargs):
        """Run a sync supabase call in the thread pool."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: fn(*args, **kwargs))
        except APIError as exc:
            raise StoreError(exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            raise StoreError(str(exc)) from exc

    def _fetch_page_sync(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        response = (
            self._client.table(self._table)
            .select("*")
            .order("data_atividade", desc=True)
            .order("id")
            .range(offset, offset + limit - 1)
            .execute()
        )
        return response.data or []

    def _upsert_sync(
        self, rows: List[StoredActivity], on_conflict: str, ignore_duplicates: bool
    ) -> None:
        (
            self._client.table(self._table)
            .upsert(rows, on_conflict=on_conflict, ignore_duplicates=ignore_duplicates)
            .execute()
        )

    async def fetch_page(self, offset: int, limit: int) -> List[StoredActivity]:
        rows = await self._run(self._fetch_page_sync, offset, limit)
        for row in rows:
            row.pop("created_at", None)
        return rows

    async def upsert(
        self,
        rows: Sequence[StoredActivity],
        *,
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> None:
        if not rows:
            return
        await self._run(self._upsert_sync, list(rows), on_conflict, ignore_duplicates)
