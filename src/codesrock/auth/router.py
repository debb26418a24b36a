"""Authentication router: all /api/auth/* endpoints.

Sign-in itself happens at the auth provider. The frontend calls
``POST /api/auth/session`` once after sign-in so the login counts toward
the daily streak.
"""

from __future__ import annotations

from dataclasses import replace

import structlog
from fastapi import APIRouter, Depends

from codesrock.auth.dependencies import get_current_user
from codesrock.auth.schemas import MeOut, SessionOut, UserOut
from codesrock.dependencies import get_gamification_repo, get_redis_dep
from codesrock.gamification.badge_service import evaluate_badges
from codesrock.gamification.levels import resolve_level
from codesrock.gamification.records import ProfileRecord, utcnow
from codesrock.gamification.repository import GamificationRepository
from codesrock.gamification.schemas import ProgressOut, StreakOut
from codesrock.gamification.streak_service import update_streak
from codesrock.gamification.xp_service import get_or_create_progress
from codesrock.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


async def _progress_out(repo: GamificationRepository, user_id: str) -> ProgressOut:
    progress = await get_or_create_progress(repo, user_id)
    badges = await repo.list_user_badges(user_id)
    return ProgressOut.build(progress, badges, resolve_level(progress.total_xp))


@router.post("/session", response_model=Envelope[SessionOut])
async def record_session(
    user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    """Record a login: stamp last_login, advance the streak, then evaluate badges."""
    now = utcnow()
    await repo.record_login(user.id, now)
    streak = await update_streak(repo, user.id, today=now.date())
    if not streak.streak_updated:
        # Same-day login; the streak path committed nothing
        await repo.commit()
    badges = await evaluate_badges(repo, redis, user.id) if streak.streak_updated else []

    logger.info("session_recorded", user_id=user.id, streak=streak.current_streak, badges=len(badges))
    return ok(
        SessionOut(
            user=UserOut.from_record(replace(user, last_login=now)),
            progress=await _progress_out(repo, user.id),
            streak=StreakOut.build(streak, badges),
        ),
        message="Login recorded",
    )


@router.get("/me", response_model=Envelope[MeOut])
async def me(
    user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
):
    progress = await _progress_out(repo, user.id)
    # Keep a lazily created progress row
    await repo.commit()
    return ok(MeOut(user=UserOut.from_record(user), progress=progress))
