from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from circulation.store import InMemoryStore, SQLAlchemyStore, Store, create_database, create_schema
from tests.helpers import Clock


async def _sqlite_store(path) -> tuple[SQLAlchemyStore, AsyncEngine]:
    session_factory, engine = create_database(f"sqlite+aiosqlite:///{path}")
    await create_schema(engine)
    return SQLAlchemyStore(session_factory), engine


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
async def sql_store(tmp_path) -> AsyncIterator[SQLAlchemyStore]:
    store, engine = await _sqlite_store(tmp_path / "library.db")
    yield store
    await engine.dispose()


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path) -> AsyncIterator[Store]:
    """Every service test runs against both adapters."""
    if request.param == "memory":
        yield InMemoryStore()
        return
    sql, engine = await _sqlite_store(tmp_path / "library.db")
    yield sql
    await engine.dispose()
