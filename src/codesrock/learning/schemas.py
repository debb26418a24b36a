"""Request and response models for the completion trigger endpoints."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from codesrock.gamification.records import EarnedBadge, XPAwardResult
from codesrock.gamification.schemas import EarnedBadgeOut, Pagination
from codesrock.learning.records import (
    CertificateRecord,
    CourseProgressSummary,
    CourseRecord,
    DownloadRecord,
    EvaluationHistoryEntry,
    RegistrationRecord,
    ResourceRecord,
    TrainingSessionRecord,
    UserEvaluationRecord,
    VideoProgressRecord,
)
from codesrock.schemas import CamelModel


def badges_out(badges: list[EarnedBadge]) -> list[EarnedBadgeOut]:
    return [EarnedBadgeOut.from_record(b) for b in badges]


def new_total(xp: XPAwardResult | None) -> int | None:
    return xp.new_total_xp if xp else None


# --- Requests ---


class VideoProgressRequest(CamelModel):
    course_id: UUID
    watched_seconds: float = Field(ge=0)
    total_seconds: float = Field(gt=0)


class DownloadRequest(CamelModel):
    resource_id: UUID


class SessionRegisterRequest(CamelModel):
    session_id: UUID


class AttendanceRequest(CamelModel):
    user_id: UUID
    session_id: UUID
    duration: int = Field(default=0, ge=0)


class EvaluationRequest(CamelModel):
    evaluation_id: UUID


class EvaluationProgressRequest(CamelModel):
    evaluation_id: UUID
    completed_items: list[str]


class EvaluationReviewRequest(CamelModel):
    user_evaluation_id: UUID
    status: str
    feedback: str = Field(default="", max_length=2000)


class ResourceRatingRequest(CamelModel):
    resource_id: UUID
    rating: int = Field(ge=1, le=5)
    review: str | None = Field(default=None, max_length=1000)


class SessionFeedbackRequest(CamelModel):
    session_id: UUID
    rating: int = Field(ge=1, le=5)
    feedback: str = Field(default="", max_length=1000)


# --- Responses ---


class VideoProgressOut(CamelModel):
    course_id: str
    watch_percentage: int
    completed: bool
    completed_at: datetime | None = None
    xp_awarded: bool
    xp_earned: int = Field(alias="xpEarned")
    leveled_up: bool = False
    new_total_xp: int | None = Field(default=None, alias="newTotalXP")
    badges_earned: list[EarnedBadgeOut] = []


class DownloadOut(CamelModel):
    resource_id: str
    first_download: bool
    xp_earned: int = Field(alias="xpEarned")
    new_total_xp: int | None = Field(default=None, alias="newTotalXP")
    badges_earned: list[EarnedBadgeOut] = []


class RegistrationOut(CamelModel):
    user_id: str
    session_id: str
    registered_at: datetime
    attended: bool
    xp_awarded: bool

    @classmethod
    def from_record(cls, record: RegistrationRecord) -> RegistrationOut:
        return cls(
            user_id=record.user_id,
            session_id=record.session_id,
            registered_at=record.registered_at,
            attended=record.attended,
            xp_awarded=record.xp_awarded,
        )


class AttendanceOut(CamelModel):
    attended: bool
    xp_awarded: int = Field(alias="xpAwarded")
    new_total_xp: int | None = Field(default=None, alias="newTotalXP")
    badges_earned: list[EarnedBadgeOut] = []


class UserEvaluationOut(CamelModel):
    id: str
    user_id: str
    evaluation_id: str
    completed_items: list[str]
    score: int
    percentage: int
    status: str
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    feedback: str = ""
    certificate_id: str | None = None

    @classmethod
    def from_record(cls, record: UserEvaluationRecord) -> UserEvaluationOut:
        return cls(
            id=record.id,
            user_id=record.user_id,
            evaluation_id=record.evaluation_id,
            completed_items=record.completed_items,
            score=record.score,
            percentage=record.percentage,
            status=record.status,
            submitted_at=record.submitted_at,
            reviewed_at=record.reviewed_at,
            feedback=record.feedback,
            certificate_id=record.certificate_id,
        )


class CertificateOut(CamelModel):
    id: str
    user_id: str
    evaluation_id: str
    title: str
    recipient_name: str
    certificate_number: str
    issued_at: datetime

    @classmethod
    def from_record(cls, record: CertificateRecord) -> CertificateOut:
        return cls(
            id=record.id,
            user_id=record.user_id,
            evaluation_id=record.evaluation_id,
            title=record.title,
            recipient_name=record.recipient_name,
            certificate_number=record.certificate_number,
            issued_at=record.issued_at,
        )


class ReviewOut(CamelModel):
    user_evaluation: UserEvaluationOut
    certificate: CertificateOut | None = None
    xp_earned: int = Field(alias="xpEarned")
    new_total_xp: int | None = Field(default=None, alias="newTotalXP")
    badges_earned: list[EarnedBadgeOut] = []


# --- Per-user history ---


class CourseProgressSummaryOut(CamelModel):
    total_courses: int
    in_progress: int
    completed: int
    not_started: int

    @classmethod
    def from_record(cls, summary: CourseProgressSummary) -> CourseProgressSummaryOut:
        return cls(
            total_courses=summary.total_courses,
            in_progress=summary.in_progress,
            completed=summary.completed,
            not_started=summary.not_started,
        )


class CourseProgressEntryOut(CamelModel):
    course_id: str
    course_title: str
    category: str
    watch_percentage: int
    completed: bool
    completed_at: datetime | None = None
    last_watched_at: datetime | None = None

    @classmethod
    def build(cls, progress: VideoProgressRecord, course: CourseRecord) -> CourseProgressEntryOut:
        return cls(
            course_id=progress.course_id,
            course_title=course.title,
            category=course.category,
            watch_percentage=progress.watch_percentage,
            completed=progress.completed,
            completed_at=progress.completed_at,
            last_watched_at=progress.last_watched_at,
        )


class CourseOverviewOut(CamelModel):
    summary: CourseProgressSummaryOut
    recent_progress: list[CourseProgressEntryOut]


class RatingOut(CamelModel):
    resource_id: str
    rating: int
    review: str
    average_rating: float
    rating_count: int


class DownloadEntryOut(CamelModel):
    resource_id: str
    resource_title: str
    downloaded_at: datetime
    xp_awarded: bool
    rating: int | None = None
    review: str = ""

    @classmethod
    def build(cls, download: DownloadRecord, resource: ResourceRecord) -> DownloadEntryOut:
        return cls(
            resource_id=download.resource_id,
            resource_title=resource.title,
            downloaded_at=download.downloaded_at,
            xp_awarded=download.xp_awarded,
            rating=download.rating,
            review=download.review,
        )


class DownloadHistoryOut(CamelModel):
    downloads: list[DownloadEntryOut]
    pagination: Pagination


class FeedbackOut(CamelModel):
    session_id: str
    rating: int | None
    feedback: str


class SessionEntryOut(CamelModel):
    session_id: str
    title: str
    status: str
    start_time: datetime | None = None
    registered_at: datetime
    attended: bool
    attended_duration: int
    xp_awarded: bool
    rating: int | None = None
    feedback: str = ""

    @classmethod
    def build(cls, registration: RegistrationRecord, session: TrainingSessionRecord) -> SessionEntryOut:
        return cls(
            session_id=session.id,
            title=session.title,
            status=session.status,
            start_time=session.start_time,
            registered_at=registration.registered_at,
            attended=registration.attended,
            attended_duration=registration.attended_duration,
            xp_awarded=registration.xp_awarded,
            rating=registration.rating,
            feedback=registration.feedback,
        )


class UserSessionsSummaryOut(CamelModel):
    total_registrations: int
    total_attended: int
    total_upcoming: int
    total_missed: int


class UserSessionsOut(CamelModel):
    upcoming: list[SessionEntryOut]
    attended: list[SessionEntryOut]
    missed: list[SessionEntryOut]
    summary: UserSessionsSummaryOut


class EvaluationHistoryOut(UserEvaluationOut):
    evaluation_title: str
    certificate_number: str | None = None

    @classmethod
    def build(cls, entry: EvaluationHistoryEntry) -> EvaluationHistoryOut:
        base = UserEvaluationOut.from_record(entry.attempt)
        return cls(
            **base.model_dump(),
            evaluation_title=entry.evaluation_title,
            certificate_number=entry.certificate_number,
        )
