"""PostgreSQL fixtures for the SQL repository tests.

These run against ``CODESROCK_DATABASE_URL`` with Alembic migrations applied,
and skip when no database is reachable.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from codesrock.config import get_settings
from codesrock.db.models import Profile
from tests.helpers import OTHER_TEACHER_ID, TEACHER_ID

PROJECT_ROOT = Path(__file__).resolve().parents[2]

TABLES = (
    "certificates",
    "user_evaluations",
    "evaluations",
    "session_registrations",
    "training_sessions",
    "resource_downloads",
    "resources",
    "video_progress",
    "courses",
    "user_badges",
    "badges",
    "activities",
    "user_progress",
    "profiles",
)

_migrated = False


def _ensure_migrations() -> None:
    """Apply Alembic migrations once per test run."""
    global _migrated  # noqa: PLW0603
    if _migrated:
        return
    # Same interpreter as the test runner
    alembic_cmd = [sys.executable, "-m", "alembic", "upgrade", "head"]
    subprocess.run(alembic_cmd, cwd=PROJECT_ROOT, check=True, capture_output=True)
    _migrated = True


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Migrated engine over empty tables."""
    engine = create_async_engine(get_settings().database_url)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (OSError, SQLAlchemyError) as exc:
        await engine.dispose()
        pytest.skip(f"PostgreSQL not reachable: {exc}")

    _ensure_migrations()
    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE TABLE {', '.join(TABLES)} CASCADE"))  # noqa: S608

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def teachers(session_factory: async_sessionmaker[AsyncSession]) -> tuple[str, str]:
    async with session_factory() as db:
        db.add_all([
            Profile(id=TEACHER_ID, email="ada@example.org", first_name="Ada", last_name="Lovelace"),
            Profile(id=OTHER_TEACHER_ID, email="grace@example.org", first_name="Grace", last_name="Hopper"),
        ])
        await db.commit()
    return TEACHER_ID, OTHER_TEACHER_ID
