"""Completion trigger endpoints plus each user's course, resource, session and evaluation history."""

from __future__ import annotations

import math
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query

from codesrock.auth.dependencies import ensure_self_or_admin, get_current_user, require_admin
from codesrock.config import get_settings
from codesrock.dependencies import get_gamification_repo, get_learning_repo, get_redis_dep
from codesrock.errors import NotFoundError
from codesrock.gamification.records import ProfileRecord
from codesrock.gamification.repository import GamificationRepository
from codesrock.gamification.schemas import Pagination
from codesrock.learning import course_service, evaluation_service, resource_service, session_service
from codesrock.learning.repository import LearningRepository
from codesrock.learning.schemas import (
    AttendanceOut,
    AttendanceRequest,
    CertificateOut,
    CourseOverviewOut,
    CourseProgressEntryOut,
    CourseProgressSummaryOut,
    DownloadEntryOut,
    DownloadHistoryOut,
    DownloadOut,
    DownloadRequest,
    EvaluationHistoryOut,
    EvaluationProgressRequest,
    EvaluationRequest,
    EvaluationReviewRequest,
    FeedbackOut,
    RatingOut,
    RegistrationOut,
    ResourceRatingRequest,
    ReviewOut,
    SessionEntryOut,
    SessionFeedbackRequest,
    SessionRegisterRequest,
    UserEvaluationOut,
    UserSessionsOut,
    UserSessionsSummaryOut,
    VideoProgressOut,
    VideoProgressRequest,
    badges_out,
    new_total,
)
from codesrock.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Learning"])

RECENT_COURSE_LIMIT = 5
HISTORY_FORBIDDEN = "Not authorized to view another user's history"


# ── Courses ──


@router.post("/courses/progress", response_model=Envelope[VideoProgressOut])
async def update_video_progress(
    body: VideoProgressRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
    gamification: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    outcome = await course_service.update_video_progress(
        learning,
        gamification,
        redis,
        user.id,
        str(body.course_id),
        body.watched_seconds,
        body.total_seconds,
        threshold=get_settings().video_completion_threshold,
    )
    progress = outcome.progress
    message = "Course completed!" if outcome.just_completed else "Progress updated"
    return ok(
        VideoProgressOut(
            course_id=progress.course_id,
            watch_percentage=progress.watch_percentage,
            completed=progress.completed,
            completed_at=progress.completed_at,
            xp_awarded=progress.xp_awarded,
            xp_earned=outcome.xp_earned,
            leveled_up=outcome.xp.leveled_up if outcome.xp else False,
            new_total_xp=new_total(outcome.xp),
            badges_earned=badges_out(outcome.badges),
        ),
        message=message,
    )


@router.get("/courses/progress/{user_id}", response_model=Envelope[CourseOverviewOut])
async def get_course_progress(
    user_id: UUID,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    """Course counts by state plus the five most recently watched courses."""
    uid = str(user_id)
    ensure_self_or_admin(user, uid, HISTORY_FORBIDDEN)
    summary = await learning.course_progress_summary(uid)
    recent = await learning.list_recent_video_progress(uid, RECENT_COURSE_LIMIT)
    return ok(
        CourseOverviewOut(
            summary=CourseProgressSummaryOut.from_record(summary),
            recent_progress=[CourseProgressEntryOut.build(progress, course) for progress, course in recent],
        )
    )


# ── Resources ──


@router.post("/resources/download", response_model=Envelope[DownloadOut])
async def download_resource(
    body: DownloadRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
    gamification: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    outcome = await resource_service.download_resource(
        learning, gamification, redis, user.id, str(body.resource_id)
    )
    return ok(
        DownloadOut(
            resource_id=str(body.resource_id),
            first_download=outcome.first_download,
            xp_earned=outcome.xp_earned,
            new_total_xp=new_total(outcome.xp),
            badges_earned=badges_out(outcome.badges),
        ),
        message="Download recorded",
    )


@router.post("/resources/rate", response_model=Envelope[RatingOut])
async def rate_resource(
    body: ResourceRatingRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    outcome = await resource_service.rate_resource(
        learning, user.id, str(body.resource_id), body.rating, body.review
    )
    return ok(
        RatingOut(
            resource_id=str(body.resource_id),
            rating=outcome.rating,
            review=outcome.review,
            average_rating=outcome.average_rating,
            rating_count=outcome.rating_count,
        ),
        message="Rating submitted successfully",
    )


@router.get("/resources/downloads/{user_id}", response_model=Envelope[DownloadHistoryOut])
async def get_user_downloads(
    user_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    uid = str(user_id)
    ensure_self_or_admin(user, uid, HISTORY_FORBIDDEN)
    rows, total = await resource_service.list_user_downloads(learning, uid, page, limit)
    history = DownloadHistoryOut(
        downloads=[DownloadEntryOut.build(download, resource) for download, resource in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )
    return ok(history, count=len(rows))


# ── Training sessions ──


@router.post("/sessions/register", response_model=Envelope[RegistrationOut], status_code=201)
async def register_for_session(
    body: SessionRegisterRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
    gamification: GamificationRepository = Depends(get_gamification_repo),
):
    registration = await session_service.register(learning, gamification, user.id, str(body.session_id))
    return ok(RegistrationOut.from_record(registration), message="Successfully registered for session")


@router.post("/sessions/attend", response_model=Envelope[AttendanceOut])
async def mark_attendance(
    body: AttendanceRequest,
    admin: ProfileRecord = Depends(require_admin),
    learning: LearningRepository = Depends(get_learning_repo),
    gamification: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    """Instructors mark attendance; session XP is granted once per registration."""
    outcome = await session_service.mark_attendance(
        learning, gamification, redis, str(body.user_id), str(body.session_id), body.duration
    )
    logger.info("attendance_marked", user_id=str(body.user_id), session_id=str(body.session_id), by=admin.id)
    return ok(
        AttendanceOut(
            attended=outcome.registration.attended,
            xp_awarded=outcome.xp_earned,
            new_total_xp=new_total(outcome.xp),
            badges_earned=badges_out(outcome.badges),
        ),
        message="Attendance marked successfully",
    )


@router.post("/sessions/feedback", response_model=Envelope[FeedbackOut])
async def submit_session_feedback(
    body: SessionFeedbackRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    registration = await session_service.submit_feedback(
        learning, user.id, str(body.session_id), body.rating, body.feedback
    )
    return ok(
        FeedbackOut(
            session_id=registration.session_id,
            rating=registration.rating,
            feedback=registration.feedback,
        ),
        message="Feedback submitted successfully",
    )


@router.get("/sessions/user/{user_id}", response_model=Envelope[UserSessionsOut])
async def get_user_sessions(
    user_id: UUID,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    uid = str(user_id)
    ensure_self_or_admin(user, uid, HISTORY_FORBIDDEN)
    sessions = await session_service.list_user_sessions(learning, uid)
    return ok(
        UserSessionsOut(
            upcoming=[SessionEntryOut.build(r, s) for r, s in sessions.upcoming],
            attended=[SessionEntryOut.build(r, s) for r, s in sessions.attended],
            missed=[SessionEntryOut.build(r, s) for r, s in sessions.missed],
            summary=UserSessionsSummaryOut(
                total_registrations=sessions.total,
                total_attended=len(sessions.attended),
                total_upcoming=len(sessions.upcoming),
                total_missed=len(sessions.missed),
            ),
        )
    )


# ── Evaluations ──


@router.post("/evaluations/start", response_model=Envelope[UserEvaluationOut])
async def start_evaluation(
    body: EvaluationRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    attempt, created = await evaluation_service.start(learning, user.id, str(body.evaluation_id))
    message = "Evaluation started" if created else "Evaluation already in progress"
    return ok(UserEvaluationOut.from_record(attempt), message=message)


@router.put("/evaluations/progress", response_model=Envelope[UserEvaluationOut])
async def update_evaluation_progress(
    body: EvaluationProgressRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    attempt = await evaluation_service.update_progress(
        learning, user.id, str(body.evaluation_id), body.completed_items
    )
    return ok(UserEvaluationOut.from_record(attempt), message="Progress updated")


@router.post("/evaluations/submit", response_model=Envelope[UserEvaluationOut])
async def submit_evaluation(
    body: EvaluationRequest,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
    gamification: GamificationRepository = Depends(get_gamification_repo),
):
    attempt = await evaluation_service.submit(learning, gamification, user.id, str(body.evaluation_id))
    return ok(UserEvaluationOut.from_record(attempt), message="Evaluation submitted for review")


@router.post("/evaluations/review", response_model=Envelope[ReviewOut])
async def review_evaluation(
    body: EvaluationReviewRequest,
    admin: ProfileRecord = Depends(require_admin),
    learning: LearningRepository = Depends(get_learning_repo),
    gamification: GamificationRepository = Depends(get_gamification_repo),
    redis: object = Depends(get_redis_dep),
):
    outcome = await evaluation_service.review(
        learning,
        gamification,
        redis,
        str(body.user_evaluation_id),
        admin.id,
        body.status,
        body.feedback,
        pass_xp=get_settings().evaluation_pass_xp,
    )
    return ok(
        ReviewOut(
            user_evaluation=UserEvaluationOut.from_record(outcome.user_evaluation),
            certificate=CertificateOut.from_record(outcome.certificate) if outcome.certificate else None,
            xp_earned=outcome.xp_earned,
            new_total_xp=new_total(outcome.xp),
            badges_earned=badges_out(outcome.badges),
        ),
        message=f"Evaluation {body.status} successfully",
    )


@router.get("/certificates/verify/{certificate_number}", response_model=Envelope[CertificateOut])
async def verify_certificate(
    certificate_number: str,
    learning: LearningRepository = Depends(get_learning_repo),
):
    """Public lookup by certificate number."""
    certificate = await learning.get_certificate_by_number(certificate_number)
    if certificate is None:
        raise NotFoundError("Certificate not found")
    return ok(CertificateOut.from_record(certificate), message="Certificate is valid")


@router.get("/evaluations/user/{user_id}", response_model=Envelope[list[EvaluationHistoryOut]])
async def get_user_evaluations(
    user_id: UUID,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    """All of the user's attempts, newest first, with certificate numbers for approved ones."""
    uid = str(user_id)
    ensure_self_or_admin(user, uid, HISTORY_FORBIDDEN)
    history = [EvaluationHistoryOut.build(entry) for entry in await learning.list_evaluation_history(uid)]
    return ok(history, count=len(history))


@router.get("/certificates/user/{user_id}", response_model=Envelope[list[CertificateOut]])
async def get_user_certificates(
    user_id: UUID,
    user: ProfileRecord = Depends(get_current_user),
    learning: LearningRepository = Depends(get_learning_repo),
):
    uid = str(user_id)
    ensure_self_or_admin(user, uid, HISTORY_FORBIDDEN)
    certificates = [CertificateOut.from_record(c) for c in await learning.list_certificates(uid)]
    return ok(certificates, count=len(certificates))
