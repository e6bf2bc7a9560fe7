from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leave_ledger.db import get_session
from leave_ledger.main import app
from leave_ledger.models import SQLModel
from leave_ledger.services.cache import set_balance_reader
from leave_ledger.services.person import InMemoryPersonDirectory, PersonInfo, set_person_directory
from support import ENLISTMENT_DATE, OFFICER_ID, OTHER_SOLDIER_ID, SOLDIER_ID

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """A throwaway SQLite database per test.

    Each test gets real commits and rollbacks so retrying transactions and
    concurrent sessions behave as they do against a live store.
    """
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()

@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)

@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session

@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client whose requests each get their own session on the test database."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()

@pytest.fixture(autouse=True)
def person_directory() -> Iterator[InMemoryPersonDirectory]:
    """Seed the in-memory personnel directory for every test."""
    directory = InMemoryPersonDirectory()
    directory.seed(
        PersonInfo(
            id=SOLDIER_ID,
            name="Dana Levi",
            rank="Sergeant",
            unit="Alpha",
            enlistment_date=ENLISTMENT_DATE,
        )
    )
    directory.seed(PersonInfo(id=OTHER_SOLDIER_ID, name="Noa Cohen", rank="Corporal", unit="Alpha"))
    directory.seed(PersonInfo(id=OFFICER_ID, name="Avi Mor", rank="Captain", unit="Alpha", person_type="officer"))
    set_person_directory(directory)
    yield directory
    set_person_directory(InMemoryPersonDirectory())

@pytest.fixture(autouse=True)
def _reset_balance_reader() -> Iterator[None]:
    """Every test starts with an empty read cache."""
    set_balance_reader(None)
    yield
    set_balance_reader(None)
