"""Gamification API endpoints: progress, XP, streaks, badges, leaderboard, activity feed."""

from __future__ import annotations

import math
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query

from codesrock.auth.dependencies import ensure_self_or_admin, get_current_user, require_admin
from codesrock.config import get_settings
from codesrock.dependencies import get_gamification_repo, get_redis_dep
from codesrock.gamification.badge_service import award_badge_direct, award_xp_and_evaluate, evaluate_badges
from codesrock.gamification.levels import LEVELS, resolve_level
from codesrock.gamification.records import ProfileRecord
from codesrock.gamification.repository import GamificationRepository
from codesrock.gamification.schemas import (
    ActivityFeedOut,
    ActivityOut,
    AddXPRequest,
    AwardBadgeOut,
    AwardBadgeRequest,
    BadgeOut,
    EarnedBadgeOut,
    LeaderboardEntryOut,
    LevelOut,
    Pagination,
    ProgressOut,
    StreakOut,
    StreakRequest,
    XPAwardOut,
)
from codesrock.gamification.streak_service import update_streak
from codesrock.gamification.xp_service import get_or_create_progress, require_user
from codesrock.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Gamification"])


# ── Public endpoints ──


@router.get("/levels", response_model=Envelope[list[LevelOut]])
async def list_levels():
    """The full level table, ascending."""
    levels = [LevelOut.from_definition(d) for d in LEVELS]
    return ok(levels, count=len(levels))


# ── Authenticated endpoints ──


@router.get("/progress/{user_id}", response_model=Envelope[ProgressOut])
async def get_user_progress(
    user_id: UUID,
    _user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
):
    """Progress, earned badges and level details; the progress row is created on first read."""
    uid = str(user_id)
    await require_user(repo, uid)
    progress = await get_or_create_progress(repo, uid)
    await repo.commit()
    badges = await repo.list_user_badges(uid)
    return ok(ProgressOut.build(progress, badges, resolve_level(progress.total_xp)))


@router.post("/progress/xp", response_model=Envelope[XPAwardOut])
async def add_xp(
    body: AddXPRequest,
    user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    uid = str(body.user_id)
    ensure_self_or_admin(user, uid)
    await require_user(repo, uid)

    result, badges = await award_xp_and_evaluate(
        repo, redis, uid, body.amount, "xp_awarded", body.description, body.metadata
    )
    message = (
        f"Added {body.amount} XP and leveled up to level {result.new_level}!"
        if result.leveled_up
        else f"Added {body.amount} XP successfully"
    )
    return ok(XPAwardOut.build(body.amount, result, badges), message=message)


@router.post("/progress/streak", response_model=Envelope[StreakOut])
async def post_streak(
    body: StreakRequest,
    user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    uid = str(body.user_id)
    ensure_self_or_admin(user, uid)
    await require_user(repo, uid)

    result = await update_streak(repo, uid)
    badges = await evaluate_badges(repo, redis, uid) if result.streak_updated else []
    if result.streak_broken:
        message = "Streak was broken and reset to 1"
    elif result.streak_updated:
        message = "Streak updated successfully"
    else:
        message = "Streak maintained"
    return ok(StreakOut.build(result, badges), message=message)


@router.get("/leaderboard", response_model=Envelope[list[LeaderboardEntryOut]])
async def get_leaderboard(
    limit: int | None = Query(None, ge=1),
    _user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
):
    """Top users by total XP. ``limit`` defaults to 10 and is capped at 100."""
    settings = get_settings()
    effective = min(limit or settings.leaderboard_default_limit, settings.leaderboard_max_limit)
    entries = await repo.leaderboard(effective)
    data = [LeaderboardEntryOut.build(rank, entry) for rank, entry in enumerate(entries, start=1)]
    return ok(data, count=len(data))


@router.get("/badges", response_model=Envelope[list[BadgeOut]])
async def list_badges(
    category: str | None = None,
    is_active: bool | None = Query(None, alias="isActive"),
    _user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
):
    badges = [BadgeOut.from_record(b) for b in await repo.list_badges(category, is_active)]
    return ok(badges, count=len(badges))


@router.get("/badges/user/{user_id}", response_model=Envelope[list[EarnedBadgeOut]])
async def list_user_badges(
    user_id: UUID,
    _user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
):
    earned = [EarnedBadgeOut.from_record(b) for b in await repo.list_user_badges(str(user_id))]
    return ok(earned, count=len(earned))


@router.post("/badges/award", response_model=Envelope[AwardBadgeOut])
async def award_badge(
    body: AwardBadgeRequest,
    admin: ProfileRecord = Depends(require_admin),
    repo: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    """Explicitly award a badge (the only way ``action`` badges are earned)."""
    uid = str(body.user_id)
    await require_user(repo, uid)
    result = await award_badge_direct(repo, redis, uid, str(body.badge_id))
    badge_name = result.earned.badge.name if result.earned.badge else str(body.badge_id)
    logger.info("badge_awarded", badge=badge_name, user_id=uid, awarded_by=admin.id)
    return ok(
        AwardBadgeOut(
            earned=EarnedBadgeOut.from_record(result.earned),
            xp_awarded=result.earned.badge.xp_reward if result.xp and result.earned.badge else 0,
            new_total_xp=result.xp.new_total_xp if result.xp else None,
        ),
        message=f'Badge "{badge_name}" awarded successfully',
    )


@router.get("/activities/{user_id}", response_model=Envelope[ActivityFeedOut])
async def get_activity_feed(
    user_id: UUID,
    limit: int | None = Query(None, ge=1, le=100),
    page: int = Query(1, ge=1),
    activity_type: str | None = Query(None, alias="type"),
    _user: ProfileRecord = Depends(get_current_user),
    repo: GamificationRepository = Depends(get_gamification_repo),
):
    """Newest first, paginated, optionally filtered by activity type."""
    per_page = limit or get_settings().activity_feed_default_limit
    entries, total = await repo.list_activities(
        str(user_id), limit=per_page, offset=(page - 1) * per_page, activity_type=activity_type
    )
    feed = ActivityFeedOut(
        activities=[ActivityOut.from_record(e) for e in entries],
        pagination=Pagination(page=page, limit=per_page, total=total, pages=math.ceil(total / per_page)),
    )
    return ok(feed, count=len(entries))
