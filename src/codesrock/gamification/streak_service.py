"""Daily activity streak tracking."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from codesrock.gamification.records import ActivityEntry, StreakResult
from codesrock.gamification.repository import GamificationRepository
from codesrock.gamification.xp_service import get_or_create_progress

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from ``earlier`` to ``later`` (negative if reversed)."""
    return (later - earlier).days


async def update_streak(
    repo: GamificationRepository,
    user_id: str,
    today: date | None = None,
) -> StreakResult:
    """Advance the user's streak for activity on ``today``.

    Same-day activity is a no-op. The next calendar day extends the streak;
    any longer gap resets it to 1. A last activity date in the future is
    treated as today.
    """
    if today is None:
        today = utc_today()

    progress = await get_or_create_progress(repo, user_id)
    last = progress.last_activity_date

    if last is None:
        new_streak, broken = 1, False
    else:
        delta = days_between(last, today)
        if delta <= 0:
            return StreakResult(current_streak=progress.streak, streak_updated=False, streak_broken=False)
        if delta == 1:
            new_streak, broken = progress.streak + 1, False
        else:
            new_streak, broken = 1, True

    longest = max(progress.longest_streak, new_streak)

    try:
        if not await repo.set_streak(user_id, new_streak, longest, today, last):
            # Another request advanced the streak first; report its result.
            await repo.commit()
            current = await repo.get_progress(user_id)
            return StreakResult(
                current_streak=current.streak if current else new_streak,
                streak_updated=False,
                streak_broken=False,
            )
        if broken:
            await repo.append_activity(ActivityEntry(
                user_id=user_id,
                type="streak_broken",
                description=f"Streak of {progress.streak} days ended",
                metadata={"previousStreak": progress.streak, "lastActivityDate": last.isoformat()},
            ))
        await repo.commit()
    except Exception:
        await repo.rollback()
        raise

    if broken:
        logger.info("Streak reset for %s (was %d)", user_id, progress.streak)

    return StreakResult(current_streak=new_streak, streak_updated=True, streak_broken=broken)
