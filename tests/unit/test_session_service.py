"""Training session registration, capacity and attendance XP."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from codesrock.errors import InvalidRequestError, InvalidStateError, NotFoundError
from codesrock.learning.records import TrainingSessionRecord
from codesrock.learning.session_service import list_user_sessions, mark_attendance, register, submit_feedback
from tests.helpers import MISSING_ID, OTHER_TEACHER_ID, TEACHER_ID

SESSION_ID = "1a2b3c4d-5e6f-4a7b-8c9d-0e1f2a3b4c5d"
PAST_SESSION_ID = "8b7a6f5e-4d3c-4b2a-9f8e-7d6c5b4a3f2e"


@pytest.fixture
def session(store):
    return store.add_session(TrainingSessionRecord(
        id=SESSION_ID, title="Live Coding Workshop", max_participants=2, xp_reward=25,
    ))


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_takes_a_seat(self, store, learning_repo, gamification_repo, teacher, session):
        registration = await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)

        assert registration.attended is False
        assert registration.xp_awarded is False
        assert store.sessions[SESSION_ID].current_participants == 1
        assert store.activity_types(TEACHER_ID) == ["session_registered"]

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, store, learning_repo, gamification_repo, teacher, session):
        await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)
        with pytest.raises(InvalidRequestError, match="Already registered"):
            await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)
        assert store.sessions[SESSION_ID].current_participants == 1

    @pytest.mark.asyncio
    async def test_full_session(self, store, learning_repo, gamification_repo, teacher):
        store.add_session(TrainingSessionRecord(
            id=SESSION_ID, title="Tiny", max_participants=1, current_participants=1,
        ))
        with pytest.raises(InvalidStateError, match="full"):
            await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)
        assert store.registrations == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["cancelled", "completed"])
    async def test_closed_session(self, store, learning_repo, gamification_repo, teacher, status):
        store.add_session(TrainingSessionRecord(id=SESSION_ID, title="Closed", status=status))
        with pytest.raises(InvalidStateError):
            await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)

    @pytest.mark.asyncio
    async def test_unknown_session(self, learning_repo, gamification_repo, teacher):
        with pytest.raises(NotFoundError):
            await register(learning_repo, gamification_repo, TEACHER_ID, MISSING_ID)


class TestMarkAttendance:
    @pytest.mark.asyncio
    async def test_attendance_awards_once(self, store, learning_repo, gamification_repo, teacher, session):
        await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)

        first = await mark_attendance(learning_repo, gamification_repo, None, TEACHER_ID, SESSION_ID, duration=90)
        second = await mark_attendance(learning_repo, gamification_repo, None, TEACHER_ID, SESSION_ID, duration=90)

        assert first.registration.attended is True
        assert first.xp_earned == 25
        assert first.xp.new_total_xp == 25
        assert second.xp_earned == 0
        assert second.xp is None
        assert store.progress[TEACHER_ID].total_xp == 25

        stored = store.registrations[(TEACHER_ID, SESSION_ID)]
        assert stored.attended is True
        assert stored.attended_duration == 90
        assert stored.xp_awarded is True

    @pytest.mark.asyncio
    async def test_requires_registration(self, learning_repo, gamification_repo, teacher, session):
        with pytest.raises(NotFoundError, match="register first"):
            await mark_attendance(learning_repo, gamification_repo, None, TEACHER_ID, SESSION_ID)

    @pytest.mark.asyncio
    async def test_registrations_are_independent(
        self, store, learning_repo, gamification_repo, teacher, other_teacher, session
    ):
        await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)
        await register(learning_repo, gamification_repo, OTHER_TEACHER_ID, SESSION_ID)
        await mark_attendance(learning_repo, gamification_repo, None, TEACHER_ID, SESSION_ID)

        assert store.registrations[(OTHER_TEACHER_ID, SESSION_ID)].attended is False
        assert OTHER_TEACHER_ID not in store.progress


class TestSubmitFeedback:
    @pytest.mark.asyncio
    async def test_feedback_stored(self, store, learning_repo, gamification_repo, teacher, session):
        await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)

        registration = await submit_feedback(learning_repo, TEACHER_ID, SESSION_ID, 4, "Clear examples")

        assert registration.rating == 4
        assert store.registrations[(TEACHER_ID, SESSION_ID)].feedback == "Clear examples"

    @pytest.mark.asyncio
    async def test_feedback_without_registration(self, learning_repo, teacher, session):
        with pytest.raises(NotFoundError, match="Registration not found"):
            await submit_feedback(learning_repo, TEACHER_ID, SESSION_ID, 4)

    @pytest.mark.asyncio
    async def test_feedback_rating_bounds(self, learning_repo, gamification_repo, teacher, session):
        await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)
        with pytest.raises(InvalidRequestError):
            await submit_feedback(learning_repo, TEACHER_ID, SESSION_ID, 9)


class TestListUserSessions:
    @pytest.mark.asyncio
    async def test_grouping(self, store, learning_repo, gamification_repo, teacher):
        now = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
        store.add_session(TrainingSessionRecord(id=SESSION_ID, title="Future", start_time=now + timedelta(hours=2)))
        store.add_session(TrainingSessionRecord(id=PAST_SESSION_ID, title="Past", start_time=now - timedelta(days=1)))
        await register(learning_repo, gamification_repo, TEACHER_ID, SESSION_ID)
        await register(learning_repo, gamification_repo, TEACHER_ID, PAST_SESSION_ID)

        sessions = await list_user_sessions(learning_repo, TEACHER_ID, now=now)

        assert [s.title for _, s in sessions.upcoming] == ["Future"]
        assert [s.title for _, s in sessions.missed] == ["Past"]
        assert sessions.attended == []
        assert sessions.total == 2
