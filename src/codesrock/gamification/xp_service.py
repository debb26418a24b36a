"""XP grants with level-up detection."""

from __future__ import annotations

import json
import logging
from typing import Any

from codesrock.errors import InvalidXPAmountError, NotFoundError
from codesrock.gamification.levels import get_level_by_xp
from codesrock.gamification.records import ActivityEntry, ProfileRecord, ProgressSnapshot, XPAwardResult
from codesrock.gamification.repository import GamificationRepository

logger = logging.getLogger(__name__)


async def publish_event(redis: object, channel: str, payload: dict[str, Any]) -> None:
    """Best-effort broadcast on a Redis pub/sub channel."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload))  # type: ignore[union-attr]
    except Exception:
        logger.warning("Failed to publish %s broadcast", channel, exc_info=True)


async def require_user(repo: GamificationRepository, user_id: str) -> ProfileRecord:
    profile = await repo.get_profile(user_id)
    if profile is None:
        raise NotFoundError("User not found")
    return profile


async def get_or_create_progress(repo: GamificationRepository, user_id: str) -> ProgressSnapshot:
    """Get or create the denormalized progress row for a user."""
    progress = await repo.get_progress(user_id)
    if progress is None:
        progress = await repo.create_progress(user_id)
    return progress


def validate_amount(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidXPAmountError("XP amount must be a positive integer")
    return amount


async def award_xp(
    repo: GamificationRepository,
    redis: object,
    user_id: str,
    amount: int,
    activity_type: str,
    description: str,
    metadata: dict[str, Any] | None = None,
) -> XPAwardResult:
    """Grant XP to a user and record it in the activity log.

    The increment, the activity entry and any level-up entry are committed
    together. On failure the unit of work is rolled back and the error
    propagates, so no activity entry exists for an award that did not land.
    """
    amount = validate_amount(amount)

    try:
        await get_or_create_progress(repo, user_id)
        updated = await repo.increment_xp(user_id, amount)

        old_level = get_level_by_xp(updated.total_xp - amount)
        leveled_up = updated.current_level > old_level.level

        await repo.append_activity(ActivityEntry(
            user_id=user_id,
            type=activity_type,
            description=description,
            xp_earned=amount,
            metadata=dict(metadata or {}),
        ))
        if leveled_up:
            await repo.append_activity(ActivityEntry(
                user_id=user_id,
                type="level_up",
                description=f"Reached level {updated.current_level}: {updated.level_name}",
                metadata={"oldLevel": old_level.level, "newLevel": updated.current_level},
            ))
        await repo.commit()
    except Exception:
        await repo.rollback()
        raise

    logger.info(
        "Awarded %d XP to %s (%s), total=%d level=%d",
        amount, user_id, activity_type, updated.total_xp, updated.current_level,
    )

    if leveled_up:
        await publish_event(redis, "pubsub:level_up", {
            "user_id": user_id,
            "old_level": old_level.level,
            "new_level": updated.current_level,
            "title": updated.level_name,
        })

    return XPAwardResult(
        new_total_xp=updated.total_xp,
        leveled_up=leveled_up,
        old_level=old_level.level,
        new_level=updated.current_level,
        level_name=updated.level_name,
    )
