"""
SQLModel-backed activity store.

Used for local runs and tests (SQLite) and for direct PostgreSQL access.
Upserts are a single INSERT ... ON CONFLICT (key columns) DO UPDATE per
batch, relying on the composite unique constraint declared on Atividade.
"""
import logging
from typing import List, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from fieldops.models.activity import STORED_COLUMNS, Atividade, StoredActivity
from fieldops.store.base import StoreError

logger = logging.getLogger(__name__)

_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


class SqlActivityStore:
    """ActivityStore over a SQLAlchemy engine (SQLite or PostgreSQL)."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result) whose
                    metadata already contains the `atividades` table.
        """
        self.engine = engine

    async def fetch_page(self, offset: int, limit: int) -> List[StoredActivity]:
        try:
            with Session(self.engine) as s:
                rows = s.exec(
                    select(Atividade)
                    .order_by(Atividade.data_atividade.desc(), Atividade.id)
                    .offset(offset)
                    .limit(limit)
                ).all()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return [row.model_dump(exclude={"created_at"}) for row in rows]

    async def upsert(
        self,
        rows: Sequence[StoredActivity],
        *,
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> None:
        if not rows:
            return
        dialect = self.engine.dialect.name
        insert = _INSERTS.get(dialect)
        if insert is None:
            raise StoreError(f"Upsert not supported for dialect {dialect!r}")

        key_columns = [c.strip() for c in on_conflict.split(",")]
        # Multi-row VALUES needs every row to carry the same keys
        values = [{c: row.get(c) for c in STORED_COLUMNS} for row in rows]

        stmt = insert(Atividade.__table__).values(values)
        if ignore_duplicates:
            stmt = stmt.on_conflict_do_nothing(index_elements=key_columns)
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=key_columns,
                set_={
                    c: stmt.excluded[c] for c in STORED_COLUMNS if c not in key_columns
                },
            )

        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            logger.debug("Upsert of %d rows failed: %s", len(values), exc)
            raise StoreError(str(exc)) from exc
