from collections.abc import AsyncIterator
from typing import Any
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from census.api.deps import get_form_registry
from census.core.db import get_session
from census.main import app
from census.models import child as _child  # noqa: F401
from census.models import child_spouse as _child_spouse  # noqa: F401
from census.models import family_head as _family_head  # noqa: F401
from census.models import grandchild as _grandchild  # noqa: F401
from census.models import spouse as _spouse  # noqa: F401
from census.services.form_state import FormSessionRegistry
from census.services.persistence import CensusStore, StoreError


class FakeStore(CensusStore):
    """Non-transactional in-memory sink that can be told to reject one table."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[str] = []

    async def insert(self, table: str, row: dict[str, Any]) -> str:
        self.calls.append(table)
        if table == self.fail_on:
            raise StoreError(f"{table} insert rejected")
        row_id = str(uuid4())
        self.rows.setdefault(table, []).append({"id": row_id, **row})
        return row_id

    def table(self, name: str) -> list[dict[str, Any]]:
        return self.rows.get(name, [])


@pytest.fixture
def store_factory():
    return FakeStore


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def form_registry() -> FormSessionRegistry:
    return FormSessionRegistry()


@pytest.fixture
async def client(form_registry: FormSessionRegistry) -> AsyncIterator[AsyncClient]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async def override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_form_registry] = lambda: form_registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()
    await engine.dispose()
