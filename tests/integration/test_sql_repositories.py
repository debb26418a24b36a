"""SQL repository behaviour under concurrent sessions on PostgreSQL."""

from __future__ import annotations

import asyncio
import subprocess
import sys
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import func, select

from codesrock.db.models import Course, Resource, UserBadge
from codesrock.gamification.levels import get_level_by_xp
from codesrock.gamification.records import utcnow
from codesrock.gamification.repository import SqlGamificationRepository
from codesrock.gamification.seed import seed_badges
from codesrock.learning.records import VideoProgressRecord
from codesrock.learning.repository import SqlLearningRepository
from tests.helpers import TEACHER_ID

pytestmark = pytest.mark.asyncio

COURSE_ID = "5b0e6a1c-2f3d-4e5f-8a9b-0c1d2e3f4a5b"
RESOURCE_ID = "9d8c7b6a-5f4e-4d3c-9b2a-1f0e9d8c7b6a"
PROJECT_ROOT = Path(__file__).resolve().parents[2]


async def _create_progress(session_factory) -> None:
    async with session_factory() as db:
        repo = SqlGamificationRepository(db)
        await repo.create_progress(TEACHER_ID)
        await repo.commit()


class TestMigrations:
    async def test_head_revision_applied(self, engine):
        """alembic current reports the latest revision."""
        result = subprocess.run(
            [sys.executable, "-m", "alembic", "current"],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stderr
        assert "004_ratings_feedback" in result.stdout


class TestIncrementXp:
    """XP increments are applied in SQL against the current row."""

    async def test_concurrent_awards_are_additive(self, session_factory, teachers):
        await _create_progress(session_factory)

        async def award(amount: int):
            async with session_factory() as db:
                repo = SqlGamificationRepository(db)
                snapshot = await repo.increment_xp(TEACHER_ID, amount)
                await repo.commit()
                return snapshot

        first, second = await asyncio.gather(award(60), award(50))

        assert max(first.total_xp, second.total_xp) == 110
        assert {first.total_xp, second.total_xp} in ({60, 110}, {50, 110})

        async with session_factory() as db:
            progress = await SqlGamificationRepository(db).get_progress(TEACHER_ID)
        level = get_level_by_xp(110)
        assert progress.total_xp == 110
        assert progress.current_xp == 110
        assert progress.current_level == level.level == 2
        assert progress.level_name == level.name

    async def test_many_concurrent_awards(self, session_factory, teachers):
        await _create_progress(session_factory)

        async def award():
            async with session_factory() as db:
                repo = SqlGamificationRepository(db)
                await repo.increment_xp(TEACHER_ID, 25)
                await repo.commit()

        await asyncio.gather(*(award() for _ in range(10)))

        async with session_factory() as db:
            progress = await SqlGamificationRepository(db).get_progress(TEACHER_ID)
        assert progress.total_xp == 250
        assert progress.level_name == get_level_by_xp(250).name


class TestStreakCompareAndSet:
    async def test_only_one_writer_advances_the_date(self, session_factory, teachers):
        await _create_progress(session_factory)
        today = date(2026, 3, 10)

        async def advance(streak: int) -> bool:
            async with session_factory() as db:
                repo = SqlGamificationRepository(db)
                written = await repo.set_streak(TEACHER_ID, streak, streak, today, None)
                await repo.commit()
                return written

        results = await asyncio.gather(advance(1), advance(1))

        assert sorted(results) == [False, True]
        async with session_factory() as db:
            progress = await SqlGamificationRepository(db).get_progress(TEACHER_ID)
        assert progress.last_activity_date == today


class TestBadgeUniqueness:
    async def test_same_badge_inserted_once(self, session_factory, teachers):
        async with session_factory() as db:
            await seed_badges(db)
            badge = (await SqlGamificationRepository(db).list_badges())[0]

        async def grant():
            async with session_factory() as db:
                repo = SqlGamificationRepository(db)
                earned = await repo.insert_badge_if_absent(TEACHER_ID, badge)
                await repo.commit()
                return earned

        results = await asyncio.gather(grant(), grant())

        assert sum(1 for earned in results if earned is not None) == 1
        async with session_factory() as db:
            count = await db.scalar(
                select(func.count()).select_from(UserBadge).where(UserBadge.user_id == TEACHER_ID)
            )
            assert count == 1
            assert await SqlGamificationRepository(db).insert_badge_if_absent(TEACHER_ID, badge) is None


class TestCourseXpClaim:
    async def test_video_xp_claimed_once(self, session_factory, teachers):
        async with session_factory() as db:
            db.add(Course(id=COURSE_ID, title="JavaScript Fundamentals", category="JavaScript", xp_reward=50))
            await db.commit()
            repo = SqlLearningRepository(db)
            await repo.save_video_progress(VideoProgressRecord(
                user_id=TEACHER_ID,
                course_id=COURSE_ID,
                watch_percentage=90,
                completed=True,
                completed_at=utcnow(),
                last_watched_at=utcnow(),
            ))
            await repo.commit()

        async def claim() -> bool:
            async with session_factory() as db:
                repo = SqlLearningRepository(db)
                claimed = await repo.claim_video_xp(TEACHER_ID, COURSE_ID)
                await repo.commit()
                return claimed

        results = await asyncio.gather(claim(), claim())

        assert sorted(results) == [False, True]
        assert await claim() is False

    async def test_incomplete_video_not_claimable(self, session_factory, teachers):
        async with session_factory() as db:
            db.add(Course(id=COURSE_ID, title="JavaScript Fundamentals", category="JavaScript", xp_reward=50))
            await db.commit()
            repo = SqlLearningRepository(db)
            await repo.save_video_progress(VideoProgressRecord(
                user_id=TEACHER_ID, course_id=COURSE_ID, watch_percentage=40, last_watched_at=utcnow(),
            ))
            assert await repo.claim_video_xp(TEACHER_ID, COURSE_ID) is False
            await repo.rollback()


class TestResourceDownloads:
    async def test_rating_row_claimed_by_one_download(self, session_factory, teachers):
        async with session_factory() as db:
            db.add(Resource(id=RESOURCE_ID, title="Rubric Pack", xp_reward=10))
            await db.commit()
            repo = SqlLearningRepository(db)
            saved = await repo.save_rating(TEACHER_ID, RESOURCE_ID, 4, "Handy", utcnow())
            assert saved.downloaded is False
            assert await repo.refresh_resource_rating(RESOURCE_ID) == (4.0, 1)
            await repo.commit()

        async def claim() -> bool:
            async with session_factory() as db:
                repo = SqlLearningRepository(db)
                claimed = await repo.claim_first_download(TEACHER_ID, RESOURCE_ID, utcnow(), True)
                await repo.commit()
                return claimed

        results = await asyncio.gather(claim(), claim())

        assert sorted(results) == [False, True]
        async with session_factory() as db:
            rows, total = await SqlLearningRepository(db).list_downloads(TEACHER_ID, 20, 0)
        assert total == 1
        download, resource = rows[0]
        assert download.rating == 4
        assert download.review == "Handy"
        assert resource.title == "Rubric Pack"
