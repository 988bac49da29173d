"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tapfarm.config import get_settings
from tapfarm.database import close_db, create_tables, get_session_factory, init_db
from tapfarm.db.models import Player
from tapfarm.progression.store import provision_player

# Monday noon UTC; every test runs on a fixed clock
T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Each test starts from default settings; env overrides are undone afterwards."""
    monkeypatch.setenv("TAPFARM_LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def override_settings(monkeypatch) -> Callable[..., None]:
    """Set TAPFARM_* environment overrides for the current test."""

    def _override(**values: object) -> None:
        for key, value in values.items():
            monkeypatch.setenv(f"TAPFARM_{key.upper()}", str(value))
        get_settings.cache_clear()

    return _override


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """A fresh SQLite database per test. Yields the session factory."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'tapfarm.db'}")
    await create_tables()
    yield get_session_factory()
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session."""
    async with database() as session:
        yield session


@pytest.fixture
def make_player(db_session: AsyncSession) -> Callable[..., Awaitable[Player]]:
    """Provision a player at T0, then apply attribute overrides."""

    async def _make(player_id: int = 1001, username: str | None = None, now: datetime = T0, **fields) -> Player:
        player, _ = await provision_player(db_session, player_id, username or f"farmer_{player_id}", now=now)
        for key, value in fields.items():
            setattr(player, key, value)
        await db_session.commit()
        return player

    return _make


@pytest_asyncio.fixture
async def client(tmp_path, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client backed by a fresh SQLite database (no Redis)."""
    monkeypatch.setenv("TAPFARM_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    get_settings.cache_clear()

    from tapfarm.main import create_app

    app = create_app()
    await init_db(get_settings().database_url)
    await create_tables()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await close_db()
