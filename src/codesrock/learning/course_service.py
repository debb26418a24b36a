"""Video progress tracking and course completion XP."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from codesrock.errors import InvalidRequestError, NotFoundError
from codesrock.gamification.badge_service import award_xp_and_evaluate
from codesrock.gamification.records import ActivityEntry, EarnedBadge, XPAwardResult, utcnow
from codesrock.gamification.repository import GamificationRepository
from codesrock.learning.records import VideoProgressRecord
from codesrock.learning.repository import LearningRepository

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_THRESHOLD = 80


@dataclass
class VideoProgressOutcome:
    progress: VideoProgressRecord
    just_completed: bool = False
    xp_earned: int = 0
    xp: XPAwardResult | None = None
    badges: list[EarnedBadge] = field(default_factory=list)


def watch_percentage(watched_seconds: float, total_seconds: float) -> int:
    """Percentage of the video watched, rounded and capped at 100."""
    if total_seconds <= 0:
        raise InvalidRequestError("Total duration must be positive")
    if watched_seconds < 0:
        raise InvalidRequestError("Watched duration cannot be negative")
    return min(100, round(watched_seconds / total_seconds * 100))


async def update_video_progress(
    learning: LearningRepository,
    gamification: GamificationRepository,
    redis: object,
    user_id: str,
    course_id: str,
    watched_seconds: float,
    total_seconds: float,
    threshold: int = DEFAULT_COMPLETION_THRESHOLD,
) -> VideoProgressOutcome:
    """Record watch progress and grant the course XP on first completion.

    The stored percentage never decreases and ``completed`` is one-way.
    Course XP is granted at most once per (user, course); a repeat call
    after completion is a no-op.
    """
    percentage = watch_percentage(watched_seconds, total_seconds)

    course = await learning.get_course(course_id)
    if course is None or not course.is_active:
        raise NotFoundError("Course not found")

    now = utcnow()
    existing = await learning.get_video_progress(user_id, course_id)
    started = existing is None
    record = existing or VideoProgressRecord(user_id=user_id, course_id=course_id)

    record.watch_percentage = max(record.watch_percentage, percentage)
    record.last_watched_at = now
    just_completed = not record.completed and record.watch_percentage >= threshold
    if just_completed:
        record.completed = True
        record.completed_at = now

    try:
        await learning.save_video_progress(record)
        if started:
            await gamification.append_activity(ActivityEntry(
                user_id=user_id,
                type="course_started",
                description=f"Started course: {course.title}",
                metadata={"courseId": course.id, "courseTitle": course.title},
            ))
        await learning.commit()
    except Exception:
        await learning.rollback()
        raise

    outcome = VideoProgressOutcome(progress=record, just_completed=just_completed)
    if not record.completed or record.xp_awarded:
        return outcome

    if not await learning.claim_video_xp(user_id, course_id):
        # Another request already claimed it
        return outcome

    await learning.increment_course_completions(course_id)
    record.xp_awarded = True
    if course.xp_reward > 0:
        outcome.xp, outcome.badges = await award_xp_and_evaluate(
            gamification,
            redis,
            user_id,
            course.xp_reward,
            "course_completed",
            f"Completed course: {course.title}",
            {"courseId": course.id, "courseTitle": course.title, "category": course.category},
        )
        outcome.xp_earned = course.xp_reward
    else:
        await learning.commit()

    logger.info("Course %s completed by %s", course_id, user_id)
    return outcome
