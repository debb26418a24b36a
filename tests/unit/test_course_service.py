"""Video progress and course completion XP."""

from __future__ import annotations

import pytest

from codesrock.errors import InvalidRequestError, NotFoundError
from codesrock.learning.course_service import update_video_progress, watch_percentage
from codesrock.learning.records import CourseRecord
from tests.helpers import MISSING_ID, TEACHER_ID

COURSE_ID = "5b0e6a1c-2f3d-4e5f-8a9b-0c1d2e3f4a5b"


@pytest.fixture
def course(store):
    return store.add_course(CourseRecord(id=COURSE_ID, title="HTML Basics", category="HTML", xp_reward=50))


class TestWatchPercentage:
    def test_rounds_and_caps(self):
        assert watch_percentage(85, 100) == 85
        assert watch_percentage(1, 3) == 33
        assert watch_percentage(500, 100) == 100
        assert watch_percentage(0, 60) == 0

    @pytest.mark.parametrize(("watched", "total"), [(10, 0), (10, -5), (-1, 100)])
    def test_rejects_bad_durations(self, watched, total):
        with pytest.raises(InvalidRequestError):
            watch_percentage(watched, total)


class TestUpdateVideoProgress:
    @pytest.mark.asyncio
    async def test_partial_watch_records_progress_only(self, store, learning_repo, gamification_repo, teacher, course):
        outcome = await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, COURSE_ID, 30, 100)

        assert outcome.progress.watch_percentage == 30
        assert outcome.progress.completed is False
        assert outcome.just_completed is False
        assert outcome.xp is None
        assert store.activity_types(TEACHER_ID) == ["course_started"]

    @pytest.mark.asyncio
    async def test_completion_awards_once(self, store, learning_repo, gamification_repo, fake_redis, teacher, course):
        """Two calls at 85% grant the course XP exactly once."""
        first = await update_video_progress(
            learning_repo, gamification_repo, fake_redis, TEACHER_ID, COURSE_ID, 85, 100
        )
        second = await update_video_progress(
            learning_repo, gamification_repo, fake_redis, TEACHER_ID, COURSE_ID, 85, 100
        )

        assert first.just_completed is True
        assert first.xp_earned == 50
        assert first.xp.new_total_xp == 50
        assert first.progress.xp_awarded is True

        assert second.just_completed is False
        assert second.xp_earned == 0
        assert second.xp is None

        assert store.progress[TEACHER_ID].total_xp == 50
        assert store.activity_types(TEACHER_ID) == ["course_started", "course_completed"]
        assert store.courses[COURSE_ID].completion_count == 1
        assert store.video_progress[(TEACHER_ID, COURSE_ID)].xp_awarded is True

    @pytest.mark.asyncio
    async def test_percentage_never_decreases(self, store, learning_repo, gamification_repo, teacher, course):
        await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, COURSE_ID, 90, 100)
        outcome = await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, COURSE_ID, 10, 100)

        assert outcome.progress.watch_percentage == 90
        assert outcome.progress.completed is True
        assert store.video_progress[(TEACHER_ID, COURSE_ID)].completed is True

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, learning_repo, gamification_repo, teacher, course):
        below = await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, COURSE_ID, 79, 100)
        assert below.progress.completed is False
        at = await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, COURSE_ID, 80, 100)
        assert at.just_completed is True

    @pytest.mark.asyncio
    async def test_zero_reward_course_completes_without_xp(self, store, learning_repo, gamification_repo, teacher):
        store.add_course(CourseRecord(id=COURSE_ID, title="Orientation", xp_reward=0))
        outcome = await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, COURSE_ID, 100, 100)

        assert outcome.just_completed is True
        assert outcome.xp is None
        assert store.video_progress[(TEACHER_ID, COURSE_ID)].xp_awarded is True
        assert TEACHER_ID not in store.progress

    @pytest.mark.asyncio
    async def test_unknown_or_inactive_course(self, store, learning_repo, gamification_repo, teacher):
        with pytest.raises(NotFoundError):
            await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, MISSING_ID, 10, 100)

        store.add_course(CourseRecord(id=COURSE_ID, title="Retired", xp_reward=50, is_active=False))
        with pytest.raises(NotFoundError):
            await update_video_progress(learning_repo, gamification_repo, None, TEACHER_ID, COURSE_ID, 10, 100)
