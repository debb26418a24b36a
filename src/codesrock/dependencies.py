"""Shared FastAPI dependencies.

Both repositories depend on ``get_db``, which FastAPI resolves once per
request, so a trigger and the XP grant it causes commit in one session.
"""

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from codesrock.database import get_session as _get_session
from codesrock.gamification.repository import GamificationRepository, SqlGamificationRepository
from codesrock.learning.repository import LearningRepository, SqlLearningRepository
from codesrock.redis_client import get_redis_or_none

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client, or None when Redis is not configured."""
    yield get_redis_or_none()


def get_gamification_repo(db: AsyncSession = Depends(get_db)) -> GamificationRepository:  # noqa: B008
    return SqlGamificationRepository(db)


def get_learning_repo(db: AsyncSession = Depends(get_db)) -> LearningRepository:  # noqa: B008
    return SqlLearningRepository(db)
