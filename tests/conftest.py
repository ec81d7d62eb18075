"""Shared test fixtures."""
from typing import Callable, Generator, List

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from fieldops.models.activity import Atividade  # noqa: F401
from fieldops.models.sync import SyncLog  # noqa: F401
from fieldops.config import Settings


class FakeHandle:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeDeferrer:
    """Deferrer driven by a manual clock: nothing fires until advance()."""

    def __init__(self):
        self.now = 0.0
        self.pending: List[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self.now + delay, callback)
        self.pending.append(handle)
        return handle

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (h for h in self.pending if h.when <= self.now and not h.cancelled),
            key=lambda h: h.when,
        )
        self.pending = [h for h in self.pending if h not in due and not h.cancelled]
        for handle in due:
            handle.callback()


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def deferrer() -> FakeDeferrer:
    return FakeDeferrer()


@pytest.fixture
def settings() -> Settings:
    """Small pages and batches so pagination and batching are exercised."""
    return Settings(
        _env_file=None,
        fetch_page_size=3,
        sync_batch_size=2,
        load_cooldown_seconds=2.0,
        merge_delay_seconds=2.5,
    )


def _make_record(
    os1: str = "A",
    os: str = "1",
    contrato: str = "C1",
    data: str = "26/01/2026",
    **extra: str,
) -> dict:
    """Display record with the four key columns filled in."""
    record = {
        "Número da OS1": os1,
        "Número da WO": os,
        "Contrato": contrato,
        "Data": data,
    }
    record.update(extra)
    return record


@pytest.fixture
def make_record():
    return _make_record
