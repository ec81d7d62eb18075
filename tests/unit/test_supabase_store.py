"""Tests for SupabaseActivityStore and build_store. The client is mocked."""
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from postgrest.exceptions import APIError

from fieldops.config import Settings
from fieldops.models.activity import CONFLICT_TARGET
from fieldops.store.base import StoreError
from fieldops.store.factory import build_store
from fieldops.store.sql_store import SqlActivityStore
from fieldops.store.supabase_store import SupabaseActivityStore, build_client


def page_query(client: MagicMock) -> MagicMock:
    table = client.table.return_value
    return table.select.return_value.order.return_value.order.return_value.range


class TestSupabaseActivityStore:
    @pytest.mark.asyncio
    async def test_fetch_page_range(self):
        client = MagicMock()
        page_query(client).return_value.execute.return_value = SimpleNamespace(
            data=[{"id": 1, "numero_os": "1", "created_at": "2026-01-26T10:00:00"}]
        )
        store = SupabaseActivityStore(client, table="atividades")

        rows = await store.fetch_page(1000, 1000)

        assert rows == [{"id": 1, "numero_os": "1"}]
        client.table.assert_called_with("atividades")
        client.table.return_value.select.return_value.order.assert_called_once_with(
            "data_atividade", desc=True
        )
        page_query(client).assert_called_once_with(1000, 1999)

    @pytest.mark.asyncio
    async def test_fetch_page_empty(self):
        client = MagicMock()
        page_query(client).return_value.execute.return_value = SimpleNamespace(data=None)
        assert await SupabaseActivityStore(client).fetch_page(0, 10) == []

    @pytest.mark.asyncio
    async def test_upsert(self):
        client = MagicMock()
        rows = [{"numero_os": "1"}, {"numero_os": "2"}]

        await SupabaseActivityStore(client).upsert(rows, on_conflict=CONFLICT_TARGET)

        client.table.return_value.upsert.assert_called_once_with(
            rows, on_conflict=CONFLICT_TARGET, ignore_duplicates=False
        )

    @pytest.mark.asyncio
    async def test_upsert_empty_skips_request(self):
        client = MagicMock()
        await SupabaseActivityStore(client).upsert([], on_conflict=CONFLICT_TARGET)
        client.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error_becomes_store_error(self):
        client = MagicMock()
        client.table.return_value.upsert.return_value.execute.side_effect = APIError(
            {"message": "ON CONFLICT DO UPDATE command cannot affect row a second time"}
        )

        with pytest.raises(StoreError, match="cannot affect row a second time"):
            await SupabaseActivityStore(client).upsert([{}], on_conflict=CONFLICT_TARGET)

    @pytest.mark.asyncio
    async def test_transport_error_becomes_store_error(self):
        client = MagicMock()
        page_query(client).return_value.execute.side_effect = httpx.ConnectError("refused")

        with pytest.raises(StoreError, match="refused"):
            await SupabaseActivityStore(client).fetch_page(0, 10)


class TestFactory:
    def test_build_client_requires_credentials(self):
        with pytest.raises(StoreError, match="SUPABASE_URL"):
            build_client(Settings(_env_file=None, supabase_url="", supabase_service_key=""))

    def test_sql_backend(self, monkeypatch, engine):
        monkeypatch.setattr("fieldops.db.engine._engine", engine)
        store = build_store(Settings(_env_file=None, store_backend="sql"))
        assert isinstance(store, SqlActivityStore)
        assert store.engine is engine

    def test_unknown_backend(self):
        with pytest.raises(StoreError, match="mongo"):
            build_store(Settings(_env_file=None, store_backend="mongo"))
