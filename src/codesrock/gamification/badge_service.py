"""Badge eligibility and awarding with duplicate prevention."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from codesrock.errors import BadgeAlreadyAwardedError, BadgeNotFoundError, CodesRockError
from codesrock.gamification.records import BadgeRecord, EarnedBadge, ProgressSnapshot, XPAwardResult
from codesrock.gamification.repository import GamificationRepository
from codesrock.gamification.xp_service import award_xp, get_or_create_progress, publish_event

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------


class XpRequirement(BaseModel):
    type: Literal["xp"]
    value: int


class LevelRequirement(BaseModel):
    type: Literal["level"]
    value: int


class StreakRequirement(BaseModel):
    type: Literal["streak"]
    value: int


class ActionRequirement(BaseModel):
    """Awarded only through the explicit award path."""

    type: Literal["action"]
    value: str | None = None


Requirement = Annotated[
    Union[XpRequirement, LevelRequirement, StreakRequirement, ActionRequirement],
    Field(discriminator="type"),
]

_requirement_adapter: TypeAdapter[Requirement] = TypeAdapter(Requirement)


def parse_requirement(raw: Any) -> Requirement | None:
    """Parse badge requirement JSON. Malformed requirements yield None."""
    try:
        return _requirement_adapter.validate_python(raw)
    except ValidationError:
        return None


def is_eligible(requirement: Requirement | None, progress: ProgressSnapshot) -> bool:
    if isinstance(requirement, XpRequirement):
        return progress.total_xp >= requirement.value
    if isinstance(requirement, LevelRequirement):
        return progress.current_level >= requirement.value
    if isinstance(requirement, StreakRequirement):
        return progress.streak >= requirement.value
    return False


# ---------------------------------------------------------------------------
# Awarding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DirectAwardResult:
    earned: EarnedBadge
    xp: XPAwardResult | None


async def _grant_badge_xp(
    repo: GamificationRepository,
    redis: object,
    user_id: str,
    badge: BadgeRecord,
) -> XPAwardResult | None:
    if badge.xp_reward <= 0:
        return None
    return await award_xp(
        repo,
        redis,
        user_id,
        badge.xp_reward,
        "badge_earned",
        f"Earned badge: {badge.name}",
        {"badgeId": badge.id, "badgeName": badge.name},
    )


async def _emit_badge_earned(redis: object, user_id: str, badge: BadgeRecord) -> None:
    await publish_event(redis, "pubsub:badge_earned", {
        "user_id": user_id,
        "badge_id": badge.id,
        "badge_name": badge.name,
        "xp_reward": badge.xp_reward,
    })


async def evaluate_badges(
    repo: GamificationRepository,
    redis: object,
    user_id: str,
) -> list[EarnedBadge]:
    """Award every active badge the user now qualifies for.

    Eligibility is judged against a single progress snapshot taken at the
    start, so XP granted by a badge earned here is only considered on the
    next call. Each badge is committed before its bonus XP is granted; a
    failed bonus is logged and the badge stays awarded.
    """
    progress = await get_or_create_progress(repo, user_id)
    candidates = await repo.list_unearned_badges(user_id)

    earned: list[EarnedBadge] = []
    for badge in candidates:
        if not is_eligible(parse_requirement(badge.requirement), progress):
            continue

        try:
            awarded = await repo.insert_badge_if_absent(user_id, badge)
            await repo.commit()
        except CodesRockError:
            await repo.rollback()
            logger.warning("Failed to award badge %s to %s", badge.name, user_id, exc_info=True)
            continue

        if awarded is None:
            # Concurrent request got there first
            continue

        try:
            await _grant_badge_xp(repo, redis, user_id, badge)
        except CodesRockError:
            logger.warning(
                "Badge %s awarded to %s but bonus XP failed", badge.name, user_id, exc_info=True
            )

        logger.info("Badge %s earned by %s", badge.name, user_id)
        await _emit_badge_earned(redis, user_id, badge)
        earned.append(awarded)

    return earned


async def award_badge_direct(
    repo: GamificationRepository,
    redis: object,
    user_id: str,
    badge_id: str,
) -> DirectAwardResult:
    """Explicitly award a badge regardless of its requirement."""
    badge = await repo.get_badge(badge_id)
    if badge is None:
        raise BadgeNotFoundError(badge_id)

    await get_or_create_progress(repo, user_id)
    try:
        awarded = await repo.insert_badge_if_absent(user_id, badge)
        await repo.commit()
    except Exception:
        await repo.rollback()
        raise

    if awarded is None:
        raise BadgeAlreadyAwardedError(badge_id)

    xp = await _grant_badge_xp(repo, redis, user_id, badge)
    await _emit_badge_earned(redis, user_id, badge)
    return DirectAwardResult(earned=awarded, xp=xp)


async def award_xp_and_evaluate(
    repo: GamificationRepository,
    redis: object,
    user_id: str,
    amount: int,
    activity_type: str,
    description: str,
    metadata: dict[str, Any] | None = None,
) -> tuple[XPAwardResult, list[EarnedBadge]]:
    """Grant XP, then run the badge evaluator against the new total."""
    result = await award_xp(repo, redis, user_id, amount, activity_type, description, metadata)
    badges = await evaluate_badges(repo, redis, user_id)
    return result, badges
