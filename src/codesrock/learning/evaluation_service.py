"""Evaluation attempts: in-progress -> submitted -> approved | rejected.

Approved and rejected are terminal. Every transition is a compare-and-set
on the stored status, so a repeated or concurrent review cannot grant the
pass XP twice.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime

from codesrock.errors import InvalidRequestError, InvalidStateError, NotFoundError
from codesrock.gamification.badge_service import award_xp_and_evaluate
from codesrock.gamification.records import ActivityEntry, EarnedBadge, XPAwardResult, utcnow
from codesrock.gamification.repository import GamificationRepository
from codesrock.learning.records import (
    EVALUATION_APPROVED,
    EVALUATION_IN_PROGRESS,
    EVALUATION_SUBMITTED,
    REVIEW_OUTCOMES,
    CertificateRecord,
    EvaluationRecord,
    UserEvaluationRecord,
)
from codesrock.learning.repository import LearningRepository

logger = logging.getLogger(__name__)

DEFAULT_PASS_XP = 150


@dataclass
class ReviewOutcome:
    user_evaluation: UserEvaluationRecord
    certificate: CertificateRecord | None = None
    xp_earned: int = 0
    xp: XPAwardResult | None = None
    badges: list[EarnedBadge] = field(default_factory=list)


def certificate_number(issued_at: datetime) -> str:
    return f"CR-{int(issued_at.timestamp() * 1000)}-{secrets.token_hex(4).upper()}"


def percentage_of(score: int, total_points: int) -> int:
    if total_points <= 0:
        return 0
    return round(score / total_points * 100)


async def _require_evaluation(learning: LearningRepository, evaluation_id: str) -> EvaluationRecord:
    evaluation = await learning.get_evaluation(evaluation_id)
    if evaluation is None:
        raise NotFoundError("Evaluation not found")
    return evaluation


async def _require_attempt(
    learning: LearningRepository, user_id: str, evaluation_id: str
) -> UserEvaluationRecord:
    attempt = await learning.get_user_evaluation(user_id, evaluation_id)
    if attempt is None:
        raise NotFoundError("User evaluation not found")
    return attempt


async def _save(learning: LearningRepository, record: UserEvaluationRecord, expected_status: str) -> None:
    if not await learning.save_user_evaluation(record, expected_status):
        raise InvalidStateError(f"Evaluation is no longer {expected_status}")


async def start(
    learning: LearningRepository,
    user_id: str,
    evaluation_id: str,
) -> tuple[UserEvaluationRecord, bool]:
    """Start an attempt. Returns ``(attempt, created)``; an existing attempt is returned as is."""
    evaluation = await _require_evaluation(learning, evaluation_id)
    if not evaluation.is_active:
        raise NotFoundError("Evaluation not found")

    existing = await learning.get_user_evaluation(user_id, evaluation_id)
    if existing is not None:
        return existing, False

    try:
        attempt = await learning.create_user_evaluation(UserEvaluationRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            evaluation_id=evaluation_id,
        ))
        await learning.commit()
    except Exception:
        await learning.rollback()
        raise
    return attempt, True


async def update_progress(
    learning: LearningRepository,
    user_id: str,
    evaluation_id: str,
    completed_items: list[str],
) -> UserEvaluationRecord:
    attempt = await _require_attempt(learning, user_id, evaluation_id)
    evaluation = await _require_evaluation(learning, evaluation_id)
    if attempt.status != EVALUATION_IN_PROGRESS:
        raise InvalidStateError("Evaluation can only be updated while in progress")

    score = evaluation.score(completed_items)
    updated = replace(
        attempt,
        completed_items=list(completed_items),
        score=score,
        percentage=percentage_of(score, evaluation.total_points),
    )
    try:
        await _save(learning, updated, EVALUATION_IN_PROGRESS)
        await learning.commit()
    except Exception:
        await learning.rollback()
        raise
    return updated


async def submit(
    learning: LearningRepository,
    gamification: GamificationRepository,
    user_id: str,
    evaluation_id: str,
) -> UserEvaluationRecord:
    attempt = await _require_attempt(learning, user_id, evaluation_id)
    if attempt.status != EVALUATION_IN_PROGRESS:
        raise InvalidStateError("Evaluation has already been submitted")
    evaluation = await _require_evaluation(learning, evaluation_id)

    updated = replace(attempt, status=EVALUATION_SUBMITTED, submitted_at=utcnow())
    try:
        await _save(learning, updated, EVALUATION_IN_PROGRESS)
        await gamification.append_activity(ActivityEntry(
            user_id=user_id,
            type="evaluation_submitted",
            description=f"Submitted evaluation: {evaluation.title}",
            metadata={
                "evaluationId": evaluation.id,
                "evaluationTitle": evaluation.title,
                "score": updated.score,
                "percentage": updated.percentage,
            },
        ))
        await learning.commit()
    except Exception:
        await learning.rollback()
        raise
    return updated


async def review(
    learning: LearningRepository,
    gamification: GamificationRepository,
    redis: object,
    user_evaluation_id: str,
    reviewer_id: str,
    status: str,
    feedback: str = "",
    pass_xp: int = DEFAULT_PASS_XP,
) -> ReviewOutcome:
    """Approve or reject a submitted attempt.

    Approval at or above the evaluation's passing score issues a certificate
    and grants ``pass_xp``. Rejection never grants XP.
    """
    if status not in REVIEW_OUTCOMES:
        raise InvalidRequestError("Status must be approved or rejected")

    attempt = await learning.get_user_evaluation_by_id(user_evaluation_id)
    if attempt is None:
        raise NotFoundError("User evaluation not found")
    if attempt.status != EVALUATION_SUBMITTED:
        raise InvalidStateError("Only submitted evaluations can be reviewed")
    evaluation = await _require_evaluation(learning, attempt.evaluation_id)

    now = utcnow()
    passed = status == EVALUATION_APPROVED and attempt.percentage >= evaluation.passing_score
    updated = replace(attempt, status=status, reviewed_at=now, reviewed_by=reviewer_id, feedback=feedback or "")
    certificate = None

    try:
        if passed:
            profile = await gamification.get_profile(attempt.user_id)
            recipient = f"{profile.first_name} {profile.last_name}".strip() if profile else ""
            certificate = CertificateRecord(
                id=str(uuid.uuid4()),
                user_id=attempt.user_id,
                evaluation_id=evaluation.id,
                title=evaluation.title,
                recipient_name=recipient,
                certificate_number=certificate_number(now),
                issued_at=now,
            )
            updated.certificate_id = certificate.id

        await _save(learning, updated, EVALUATION_SUBMITTED)
        if certificate is not None:
            await learning.create_certificate(certificate)
        if not passed or pass_xp <= 0:
            await learning.commit()
            return ReviewOutcome(user_evaluation=updated, certificate=certificate)
    except Exception:
        await learning.rollback()
        raise

    xp, badges = await award_xp_and_evaluate(
        gamification,
        redis,
        attempt.user_id,
        pass_xp,
        "evaluation_passed",
        f"Passed evaluation: {evaluation.title}",
        {
            "evaluationId": evaluation.id,
            "evaluationTitle": evaluation.title,
            "percentage": attempt.percentage,
            "certificateId": certificate.id if certificate else None,
        },
    )
    logger.info("Evaluation %s approved for %s", evaluation.id, attempt.user_id)
    return ReviewOutcome(
        user_evaluation=updated, certificate=certificate, xp_earned=pass_xp, xp=xp, badges=badges
    )
