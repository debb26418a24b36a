"""Shared test fixtures.

Repositories and Redis are replaced by the in-memory fakes in
``tests/fakes.py``, so the suite needs neither PostgreSQL nor Redis.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from codesrock.config import get_settings
from codesrock.dependencies import get_db, get_gamification_repo, get_learning_repo, get_redis_dep
from codesrock.gamification.records import ProfileRecord
from codesrock.main import create_app
from tests.fakes import FakeGamificationRepository, FakeLearningRepository, FakeRedis, FakeSession, FakeStore
from tests.helpers import ADMIN_ID, OTHER_TEACHER_ID, TEACHER_ID


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def gamification_repo(store: FakeStore) -> FakeGamificationRepository:
    return FakeGamificationRepository(store)


@pytest.fixture
def learning_repo(store: FakeStore) -> FakeLearningRepository:
    return FakeLearningRepository(store)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def teacher(store: FakeStore) -> ProfileRecord:
    return store.add_profile(ProfileRecord(
        id=TEACHER_ID, email="ada@example.com", first_name="Ada", last_name="Lovelace",
    ))


@pytest.fixture
def other_teacher(store: FakeStore) -> ProfileRecord:
    return store.add_profile(ProfileRecord(
        id=OTHER_TEACHER_ID, email="grace@example.com", first_name="Grace", last_name="Hopper",
    ))


@pytest.fixture
def admin(store: FakeStore) -> ProfileRecord:
    return store.add_profile(ProfileRecord(
        id=ADMIN_ID, email="admin@example.com", first_name="Site", last_name="Admin", role="admin",
    ))


@pytest.fixture
def db_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def app(store: FakeStore, fake_redis: FakeRedis, db_session: FakeSession) -> Iterator[FastAPI]:
    """App with every store dependency pointed at the fakes.

    ``ASGITransport`` does not run the lifespan, so no engine or Redis
    pool is ever created.
    """
    application = create_app()

    async def _db() -> AsyncGenerator[FakeSession, None]:
        yield db_session

    application.dependency_overrides[get_db] = _db
    application.dependency_overrides[get_gamification_repo] = lambda: FakeGamificationRepository(store)
    application.dependency_overrides[get_learning_repo] = lambda: FakeLearningRepository(store)
    application.dependency_overrides[get_redis_dep] = lambda: fake_redis
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
