"""Training session registration, attendance, feedback and per-user history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from codesrock.errors import InvalidRequestError, InvalidStateError, NotFoundError
from codesrock.gamification.badge_service import award_xp_and_evaluate
from codesrock.gamification.records import ActivityEntry, EarnedBadge, XPAwardResult, utcnow
from codesrock.gamification.repository import GamificationRepository
from codesrock.learning.records import RegistrationRecord, TrainingSessionRecord
from codesrock.learning.repository import LearningRepository

logger = logging.getLogger(__name__)

CLOSED_STATUSES = frozenset({"cancelled", "completed"})


@dataclass
class AttendanceOutcome:
    registration: RegistrationRecord
    xp_earned: int = 0
    xp: XPAwardResult | None = None
    badges: list[EarnedBadge] = field(default_factory=list)


async def _require_session(learning: LearningRepository, session_id: str) -> TrainingSessionRecord:
    session = await learning.get_session(session_id)
    if session is None:
        raise NotFoundError("Session not found")
    return session


async def register(
    learning: LearningRepository,
    gamification: GamificationRepository,
    user_id: str,
    session_id: str,
) -> RegistrationRecord:
    """Register a user for an open session with a free seat."""
    session = await _require_session(learning, session_id)
    if not session.is_active or session.status in CLOSED_STATUSES:
        raise InvalidStateError("Session is not open for registration")

    if await learning.get_registration(user_id, session_id) is not None:
        raise InvalidRequestError("Already registered for this session")

    record = RegistrationRecord(user_id=user_id, session_id=session_id, registered_at=utcnow())
    try:
        if not await learning.reserve_seat(session_id):
            raise InvalidStateError("Session is full")
        if not await learning.create_registration(record):
            raise InvalidRequestError("Already registered for this session")
        await gamification.append_activity(ActivityEntry(
            user_id=user_id,
            type="session_registered",
            description=f"Registered for session: {session.title}",
            metadata={"sessionId": session.id, "sessionTitle": session.title},
        ))
        await learning.commit()
    except Exception:
        await learning.rollback()
        raise

    return record


async def mark_attendance(
    learning: LearningRepository,
    gamification: GamificationRepository,
    redis: object,
    user_id: str,
    session_id: str,
    duration: int = 0,
) -> AttendanceOutcome:
    """Mark a registered user as attended and grant the session XP once."""
    registration = await learning.get_registration(user_id, session_id)
    if registration is None:
        raise NotFoundError("Registration not found. Please register first.")
    session = await _require_session(learning, session_id)

    try:
        if not registration.attended:
            await learning.mark_attended(user_id, session_id, duration)
            registration.attended = True
            registration.attended_duration = duration
        claimed = session.xp_reward > 0 and await learning.claim_registration_xp(user_id, session_id)
        if not claimed:
            await learning.commit()
            return AttendanceOutcome(registration=registration)
    except Exception:
        await learning.rollback()
        raise

    registration.xp_awarded = True
    xp, badges = await award_xp_and_evaluate(
        gamification,
        redis,
        user_id,
        session.xp_reward,
        "session_attended",
        f"Attended session: {session.title}",
        {"sessionId": session.id, "sessionTitle": session.title, "duration": duration},
    )
    logger.info("Attendance recorded for %s at session %s", user_id, session_id)
    return AttendanceOutcome(registration=registration, xp_earned=session.xp_reward, xp=xp, badges=badges)


async def submit_feedback(
    learning: LearningRepository,
    user_id: str,
    session_id: str,
    rating: int,
    feedback: str = "",
) -> RegistrationRecord:
    """Attach a 1-5 rating and optional comment to the user's registration."""
    if not 1 <= rating <= 5:
        raise InvalidRequestError("Rating must be between 1 and 5")

    try:
        if not await learning.save_session_feedback(user_id, session_id, rating, feedback):
            raise NotFoundError("Registration not found")
        await learning.commit()
    except Exception:
        await learning.rollback()
        raise

    registration = await learning.get_registration(user_id, session_id)
    assert registration is not None
    return registration


@dataclass
class UserSessions:
    upcoming: list[tuple[RegistrationRecord, TrainingSessionRecord]] = field(default_factory=list)
    attended: list[tuple[RegistrationRecord, TrainingSessionRecord]] = field(default_factory=list)
    missed: list[tuple[RegistrationRecord, TrainingSessionRecord]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.upcoming) + len(self.attended) + len(self.missed)


async def list_user_sessions(
    learning: LearningRepository,
    user_id: str,
    now: datetime | None = None,
) -> UserSessions:
    """Split the user's registrations into attended, upcoming and missed.

    Attendance wins over timing. An unattended session with no start time
    counts as missed.
    """
    if now is None:
        now = utcnow()

    sessions = UserSessions()
    for registration, session in await learning.list_registrations(user_id):
        if registration.attended:
            sessions.attended.append((registration, session))
        elif session.start_time is not None and session.start_time > now:
            sessions.upcoming.append((registration, session))
        else:
            sessions.missed.append((registration, session))
    return sessions
