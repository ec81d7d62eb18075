"""
Integration tests for SqlActivityStore against in-memory SQLite.

Exercises the real INSERT ... ON CONFLICT path on the composite key.
"""
from unittest.mock import MagicMock

import pytest
from sqlmodel import Session, select

from fieldops.mapping.field_mapper import to_stored
from fieldops.models.activity import CONFLICT_TARGET, Atividade
from fieldops.store.base import StoreError
from fieldops.store.sql_store import SqlActivityStore
from fieldops.sync.dedupe import dedupe


def rows(*records):
    return dedupe(to_stored(r) for r in records)


@pytest.fixture(name="store")
def store_fixture(engine):
    return SqlActivityStore(engine)


class TestUpsert:
    @pytest.mark.asyncio
    async def test_inserts_rows(self, store, engine, make_record):
        await store.upsert(
            rows(make_record(os="1"), make_record(os="2")), on_conflict=CONFLICT_TARGET
        )

        with Session(engine) as s:
            saved = s.exec(select(Atividade)).all()
        assert len(saved) == 2
        assert {a.numero_os for a in saved} == {"1", "2"}
        assert saved[0].data_atividade == "2026-01-26"

    @pytest.mark.asyncio
    async def test_same_key_overwrites(self, store, engine, make_record):
        await store.upsert(
            rows(make_record(Recurso="ANA", Bairro="Centro")), on_conflict=CONFLICT_TARGET
        )
        await store.upsert(
            rows(make_record(Recurso="BIA", Duração="01:17")), on_conflict=CONFLICT_TARGET
        )

        with Session(engine) as s:
            saved = s.exec(select(Atividade)).all()
        assert len(saved) == 1
        assert saved[0].recurso == "BIA"
        assert saved[0].duracao_minutos == 77
        # Columns absent from the newer row are cleared, not merged
        assert saved[0].bairro is None

    @pytest.mark.asyncio
    async def test_ignore_duplicates_keeps_existing(self, store, engine, make_record):
        await store.upsert(rows(make_record(Recurso="ANA")), on_conflict=CONFLICT_TARGET)
        await store.upsert(
            rows(make_record(Recurso="BIA")),
            on_conflict=CONFLICT_TARGET,
            ignore_duplicates=True,
        )

        with Session(engine) as s:
            saved = s.exec(select(Atividade)).all()
        assert [a.recurso for a in saved] == ["ANA"]

    @pytest.mark.asyncio
    async def test_missing_date_uses_sentinel(self, store, engine, make_record):
        await store.upsert(rows(make_record(data="")), on_conflict=CONFLICT_TARGET)

        with Session(engine) as s:
            saved = s.exec(select(Atividade)).one()
        assert saved.data_atividade == "1900-01-01"

    @pytest.mark.asyncio
    async def test_empty_batch_is_noop(self, store):
        await store.upsert([], on_conflict=CONFLICT_TARGET)

    @pytest.mark.asyncio
    async def test_unsupported_dialect(self, make_record):
        engine = MagicMock()
        engine.dialect.name = "mssql"
        with pytest.raises(StoreError, match="mssql"):
            await SqlActivityStore(engine).upsert(
                rows(make_record()), on_conflict=CONFLICT_TARGET
            )


class TestFetchPage:
    @pytest.mark.asyncio
    async def test_pages_by_date_desc(self, store, make_record):
        await store.upsert(
            rows(
                make_record(os="1", data="01/01/2026"),
                make_record(os="2", data="03/01/2026"),
                make_record(os="3", data="02/01/2026"),
                make_record(os="4", data="03/01/2026"),
            ),
            on_conflict=CONFLICT_TARGET,
        )

        first = await store.fetch_page(0, 3)
        second = await store.fetch_page(3, 3)
        third = await store.fetch_page(6, 3)

        assert [r["numero_os"] for r in first] == ["2", "4", "3"]
        assert [r["numero_os"] for r in second] == ["1"]
        assert third == []

    @pytest.mark.asyncio
    async def test_rows_have_store_columns(self, store, make_record):
        await store.upsert(rows(make_record(Recurso="ANA")), on_conflict=CONFLICT_TARGET)

        (row,) = await store.fetch_page(0, 10)

        assert row["recurso"] == "ANA"
        assert "id" in row
        assert "created_at" not in row
