from __future__ import annotations

import pytest
from sqlalchemy.pool import StaticPool

from relay_bot.database.engine import create_engine, create_session_factory, init_models

from fakes import FakeTransport


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def session_pool(anyio_backend):
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
