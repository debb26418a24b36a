"""Resource downloads and ratings.

The first download per user grants the resource XP. A rating may be left
before downloading; that row stays ``downloaded = false`` until the first
real download claims it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from codesrock.errors import InvalidRequestError, NotFoundError
from codesrock.gamification.badge_service import award_xp_and_evaluate
from codesrock.gamification.records import EarnedBadge, XPAwardResult, utcnow
from codesrock.gamification.repository import GamificationRepository
from codesrock.learning.records import DownloadRecord, ResourceRecord
from codesrock.learning.repository import LearningRepository

logger = logging.getLogger(__name__)


@dataclass
class DownloadOutcome:
    first_download: bool
    xp_earned: int = 0
    xp: XPAwardResult | None = None
    badges: list[EarnedBadge] = field(default_factory=list)


async def download_resource(
    learning: LearningRepository,
    gamification: GamificationRepository,
    redis: object,
    user_id: str,
    resource_id: str,
) -> DownloadOutcome:
    resource = await learning.get_resource(resource_id)
    if resource is None or not resource.is_active:
        raise NotFoundError("Resource not found")

    now = utcnow()
    try:
        first = await learning.insert_download_if_absent(DownloadRecord(
            user_id=user_id,
            resource_id=resource_id,
            downloaded_at=now,
            xp_awarded=resource.xp_reward > 0,
        ))
        if not first:
            first = await learning.claim_first_download(user_id, resource_id, now, resource.xp_reward > 0)
        if not first:
            await learning.touch_download(user_id, resource_id, now)
            await learning.commit()
            return DownloadOutcome(first_download=False)

        await learning.increment_resource_downloads(resource_id)
        if resource.xp_reward <= 0:
            await learning.commit()
            return DownloadOutcome(first_download=True)
    except Exception:
        await learning.rollback()
        raise

    # The download row commits together with the XP grant.
    xp, badges = await award_xp_and_evaluate(
        gamification,
        redis,
        user_id,
        resource.xp_reward,
        "resource_downloaded",
        f"Downloaded resource: {resource.title}",
        {"resourceId": resource.id, "resourceTitle": resource.title},
    )
    logger.info("Resource %s first downloaded by %s", resource_id, user_id)
    return DownloadOutcome(first_download=True, xp_earned=resource.xp_reward, xp=xp, badges=badges)


@dataclass
class RatingOutcome:
    rating: int
    review: str
    average_rating: float
    rating_count: int


async def rate_resource(
    learning: LearningRepository,
    user_id: str,
    resource_id: str,
    rating: int,
    review: str | None = None,
) -> RatingOutcome:
    """Store a 1-5 rating and refresh the resource average.

    Re-rating overwrites the previous rating; an omitted review keeps the
    earlier one. Ratings never grant XP.
    """
    if not 1 <= rating <= 5:
        raise InvalidRequestError("Rating must be between 1 and 5")

    resource = await learning.get_resource(resource_id)
    if resource is None:
        raise NotFoundError("Resource not found")

    try:
        saved = await learning.save_rating(user_id, resource_id, rating, review, utcnow())
        average, count = await learning.refresh_resource_rating(resource_id)
        await learning.commit()
    except Exception:
        await learning.rollback()
        raise

    return RatingOutcome(rating=rating, review=saved.review, average_rating=average, rating_count=count)


async def list_user_downloads(
    learning: LearningRepository,
    user_id: str,
    page: int,
    limit: int,
) -> tuple[list[tuple[DownloadRecord, ResourceRecord]], int]:
    """One page of the user's downloads, newest first. Rating-only rows are excluded."""
    return await learning.list_downloads(user_id, limit, (page - 1) * limit)
