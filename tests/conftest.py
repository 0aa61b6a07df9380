"""Shared test fixtures.

Tests run against a throwaway SQLite database (aiosqlite) built from the ORM
metadata, with Redis left uninitialised unless a test installs FakeRedis.
"""

from __future__ import annotations

import itertools
import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

_DB_DIR = tempfile.mkdtemp(prefix="strive_test_")
os.environ["STRIVE_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'strive.db')}"
os.environ["STRIVE_JWT_SECRET"] = "strive-test-secret-0123456789abcdef"
os.environ["STRIVE_GROQ_API_KEY"] = ""
os.environ["STRIVE_TIMEZONE"] = "UTC"
os.environ["STRIVE_LOG_FORMAT"] = "console"

from strive.config import get_settings  # noqa: E402

get_settings.cache_clear()

from strive.ai.client import get_evaluator  # noqa: E402
from strive.auth.jwt import create_access_token  # noqa: E402
from strive.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from strive.db.base import Base  # noqa: E402
from strive.db.models import User  # noqa: E402
from strive.main import create_app  # noqa: E402

get_evaluator.cache_clear()


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the app makes."""

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}
        self.published: list[tuple[str, str]] = []

    async def ping(self) -> bool:
        return True

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self.redis = redis
        self.ops: list[tuple[str, str]] = []

    def incr(self, key: str) -> None:
        self.ops.append(("incr", key))

    def expire(self, key: str, _seconds: int) -> None:
        self.ops.append(("expire", key))

    async def execute(self) -> list[Any]:
        results: list[Any] = []
        for op, key in self.ops:
            if op == "incr":
                self.redis.counters[key] = self.redis.counters.get(key, 0) + 1
                results.append(self.redis.counters[key])
            else:
                results.append(True)
        return results


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema for every test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for setup and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI, database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client. Lifespan is skipped; the database fixture stands in for it."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory for committed users; keyword arguments override columns."""
    counter = itertools.count(1)

    async def _make(**fields: Any) -> User:
        n = next(counter)
        fields.setdefault("email", f"user{n}@example.com")
        fields.setdefault("name", f"User {n}")
        fields.setdefault("created_at", datetime.now(timezone.utc))
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def user(make_user: Callable[..., Awaitable[User]]) -> User:
    return await make_user(name="Ada")


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, user: User) -> AsyncClient:
    """Client authenticated as the `user` fixture."""
    client.headers.update(auth_headers(user))
    return client


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    """Bearer headers for any user."""
    return auth_headers
