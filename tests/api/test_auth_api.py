"""Auth API tests: token handling, login recording, /me."""

from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from codesrock.auth.jwt import create_access_token
from codesrock.gamification.records import ProgressSnapshot
from codesrock.gamification.seed import BADGE_SEED_DATA
from codesrock.gamification.streak_service import utc_today
from tests.helpers import MISSING_ID, TEACHER_ID, bearer


class TestTokenHandling:
    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient, teacher):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["message"].startswith("Not authorized, ")

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, teacher):
        token = create_access_token(TEACHER_ID, expires_in=timedelta(minutes=-1))
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, Token has expired"

    @pytest.mark.asyncio
    async def test_unknown_profile(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers=bearer(MISSING_ID))
        assert response.status_code == 404
        assert response.json()["message"] == "User profile not found"

    @pytest.mark.asyncio
    async def test_deactivated_account(self, client: AsyncClient, store, teacher):
        store.profiles[TEACHER_ID].is_active = False
        response = await client.get("/api/auth/me", headers=bearer(TEACHER_ID))
        assert response.status_code == 403
        assert response.json()["message"] == "Account is deactivated"


class TestMe:
    @pytest.mark.asyncio
    async def test_profile_and_progress(self, client: AsyncClient, teacher):
        response = await client.get("/api/auth/me", headers=bearer(TEACHER_ID))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["email"] == "ada@example.com"
        assert data["user"]["firstName"] == "Ada"
        assert data["user"]["role"] == "teacher"
        assert data["progress"]["totalXP"] == 0

    @pytest.mark.asyncio
    async def test_lazily_created_progress_is_committed(self, client: AsyncClient, store, teacher):
        assert TEACHER_ID not in store.progress

        response = await client.get("/api/auth/me", headers=bearer(TEACHER_ID))
        assert response.status_code == 200

        # A rollback only discards uncommitted work
        store.rollback()
        assert TEACHER_ID in store.progress
        assert store.progress[TEACHER_ID].current_level == 1


class TestRecordSession:
    @pytest.mark.asyncio
    async def test_first_login_starts_streak(self, client: AsyncClient, store, teacher):
        response = await client.post("/api/auth/session", headers=bearer(TEACHER_ID))
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login recorded"
        assert body["data"]["user"]["lastLogin"] is not None
        assert body["data"]["streak"]["currentStreak"] == 1
        assert body["data"]["streak"]["streakUpdated"] is True
        assert store.profiles[TEACHER_ID].last_login is not None

    @pytest.mark.asyncio
    async def test_second_login_same_day(self, client: AsyncClient, teacher):
        await client.post("/api/auth/session", headers=bearer(TEACHER_ID))
        response = await client.post("/api/auth/session", headers=bearer(TEACHER_ID))
        streak = response.json()["data"]["streak"]
        assert streak["currentStreak"] == 1
        assert streak["streakUpdated"] is False

    @pytest.mark.asyncio
    async def test_login_awards_streak_badge(self, client: AsyncClient, store, teacher):
        store.add_badges_from_seed(BADGE_SEED_DATA)
        store.add_progress(ProgressSnapshot(
            user_id=TEACHER_ID, streak=6, longest_streak=6, last_activity_date=utc_today() - timedelta(days=1),
        ))
        response = await client.post("/api/auth/session", headers=bearer(TEACHER_ID))
        data = response.json()["data"]
        assert [b["badge"]["name"] for b in data["streak"]["badgesEarned"]] == ["Week Warrior"]
        assert data["progress"]["totalXP"] == 30
        assert data["progress"]["longestStreak"] == 7
