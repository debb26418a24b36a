"""Storage for the completion triggers.

Every XP-bearing transition has a conditional write here (``claim_*``,
``insert_download_if_absent``, ``save_user_evaluation``) that succeeds for
exactly one caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from codesrock.db.models import (
    Certificate,
    Course,
    Evaluation,
    Resource,
    ResourceDownload,
    SessionRegistration,
    TrainingSession,
    UserEvaluation,
    VideoProgress,
)
from codesrock.gamification.repository import translate_errors
from codesrock.learning.records import (
    CertificateRecord,
    CourseProgressSummary,
    CourseRecord,
    DownloadRecord,
    EvaluationHistoryEntry,
    EvaluationRecord,
    RegistrationRecord,
    ResourceRecord,
    TrainingSessionRecord,
    UserEvaluationRecord,
    VideoProgressRecord,
)


class LearningRepository(Protocol):
    # Courses
    async def get_course(self, course_id: str) -> CourseRecord | None: ...

    async def get_video_progress(self, user_id: str, course_id: str) -> VideoProgressRecord | None: ...

    async def save_video_progress(self, record: VideoProgressRecord) -> None: ...

    async def claim_video_xp(self, user_id: str, course_id: str) -> bool: ...

    async def increment_course_completions(self, course_id: str) -> None: ...

    async def course_progress_summary(self, user_id: str) -> CourseProgressSummary: ...

    async def list_recent_video_progress(
        self, user_id: str, limit: int
    ) -> list[tuple[VideoProgressRecord, CourseRecord]]: ...

    # Resources
    async def get_resource(self, resource_id: str) -> ResourceRecord | None: ...

    async def insert_download_if_absent(self, record: DownloadRecord) -> bool: ...

    async def claim_first_download(
        self, user_id: str, resource_id: str, at: datetime, xp_awarded: bool
    ) -> bool: ...

    async def touch_download(self, user_id: str, resource_id: str, at: datetime) -> None: ...

    async def increment_resource_downloads(self, resource_id: str) -> None: ...

    async def save_rating(
        self, user_id: str, resource_id: str, rating: int, review: str | None, at: datetime
    ) -> DownloadRecord: ...

    async def refresh_resource_rating(self, resource_id: str) -> tuple[float, int]: ...

    async def list_downloads(
        self, user_id: str, limit: int, offset: int
    ) -> tuple[list[tuple[DownloadRecord, ResourceRecord]], int]: ...

    # Training sessions
    async def get_session(self, session_id: str) -> TrainingSessionRecord | None: ...

    async def get_registration(self, user_id: str, session_id: str) -> RegistrationRecord | None: ...

    async def reserve_seat(self, session_id: str) -> bool: ...

    async def create_registration(self, record: RegistrationRecord) -> bool: ...

    async def mark_attended(self, user_id: str, session_id: str, duration: int) -> None: ...

    async def claim_registration_xp(self, user_id: str, session_id: str) -> bool: ...

    async def save_session_feedback(
        self, user_id: str, session_id: str, rating: int, feedback: str
    ) -> bool: ...

    async def list_registrations(
        self, user_id: str
    ) -> list[tuple[RegistrationRecord, TrainingSessionRecord]]: ...

    # Evaluations
    async def get_evaluation(self, evaluation_id: str) -> EvaluationRecord | None: ...

    async def get_user_evaluation(self, user_id: str, evaluation_id: str) -> UserEvaluationRecord | None: ...

    async def get_user_evaluation_by_id(self, user_evaluation_id: str) -> UserEvaluationRecord | None: ...

    async def create_user_evaluation(self, record: UserEvaluationRecord) -> UserEvaluationRecord: ...

    async def save_user_evaluation(self, record: UserEvaluationRecord, expected_status: str) -> bool: ...

    async def list_evaluation_history(self, user_id: str) -> list[EvaluationHistoryEntry]: ...

    async def create_certificate(self, record: CertificateRecord) -> None: ...

    async def get_certificate_by_number(self, certificate_number: str) -> CertificateRecord | None: ...

    async def list_certificates(self, user_id: str) -> list[CertificateRecord]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


def _course_record(row: Course) -> CourseRecord:
    return CourseRecord(
        id=str(row.id),
        title=row.title,
        category=row.category,
        xp_reward=row.xp_reward,
        completion_count=row.completion_count,
        is_active=row.is_active,
    )


def _video_record(row: VideoProgress) -> VideoProgressRecord:
    return VideoProgressRecord(
        user_id=str(row.user_id),
        course_id=str(row.course_id),
        watch_percentage=row.watch_percentage,
        completed=row.completed,
        completed_at=row.completed_at,
        xp_awarded=row.xp_awarded,
        last_watched_at=row.last_watched_at,
    )


def _resource_record(row: Resource) -> ResourceRecord:
    return ResourceRecord(
        id=str(row.id),
        title=row.title,
        xp_reward=row.xp_reward,
        download_count=row.download_count,
        is_active=row.is_active,
        average_rating=float(row.average_rating or 0),
        rating_count=row.rating_count,
    )


def _download_record(row: ResourceDownload) -> DownloadRecord:
    return DownloadRecord(
        user_id=str(row.user_id),
        resource_id=str(row.resource_id),
        downloaded_at=row.downloaded_at,
        xp_awarded=row.xp_awarded,
        downloaded=row.downloaded,
        rating=row.rating,
        review=row.review,
    )


def _session_record(row: TrainingSession) -> TrainingSessionRecord:
    return TrainingSessionRecord(
        id=str(row.id),
        title=row.title,
        status=row.status,
        max_participants=row.max_participants,
        current_participants=row.current_participants,
        xp_reward=row.xp_reward,
        is_active=row.is_active,
        start_time=row.start_time,
    )


def _registration_record(row: SessionRegistration) -> RegistrationRecord:
    return RegistrationRecord(
        user_id=str(row.user_id),
        session_id=str(row.session_id),
        registered_at=row.registered_at,
        attended=row.attended,
        attended_duration=row.attended_duration,
        xp_awarded=row.xp_awarded,
        rating=row.rating,
        feedback=row.feedback,
    )


def _user_evaluation_record(row: UserEvaluation) -> UserEvaluationRecord:
    return UserEvaluationRecord(
        id=str(row.id),
        user_id=str(row.user_id),
        evaluation_id=str(row.evaluation_id),
        completed_items=list(row.completed_items or []),
        score=row.score,
        percentage=row.percentage,
        status=row.status,
        submitted_at=row.submitted_at,
        reviewed_at=row.reviewed_at,
        reviewed_by=str(row.reviewed_by) if row.reviewed_by else None,
        feedback=row.feedback,
        certificate_id=str(row.certificate_id) if row.certificate_id else None,
        created_at=row.created_at,
    )


def _certificate_record(row: Certificate) -> CertificateRecord:
    return CertificateRecord(
        id=str(row.id),
        user_id=str(row.user_id),
        evaluation_id=str(row.evaluation_id),
        title=row.title,
        recipient_name=row.recipient_name,
        certificate_number=row.certificate_number,
        issued_at=row.issued_at,
    )


class SqlLearningRepository:
    """PostgreSQL-backed repository sharing the request's ``AsyncSession``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Courses ──

    @translate_errors
    async def get_course(self, course_id: str) -> CourseRecord | None:
        row = (await self.db.execute(select(Course).where(Course.id == course_id))).scalar_one_or_none()
        return _course_record(row) if row is not None else None

    @translate_errors
    async def get_video_progress(self, user_id: str, course_id: str) -> VideoProgressRecord | None:
        result = await self.db.execute(
            select(VideoProgress)
            .where(VideoProgress.user_id == user_id, VideoProgress.course_id == course_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _video_record(row) if row is not None else None

    @translate_errors
    async def save_video_progress(self, record: VideoProgressRecord) -> None:
        stmt = pg_insert(VideoProgress).values(
            user_id=record.user_id,
            course_id=record.course_id,
            watch_percentage=record.watch_percentage,
            completed=record.completed,
            completed_at=record.completed_at,
            last_watched_at=record.last_watched_at,
        )
        # Percentage never decreases and completion never flips back.
        stmt = stmt.on_conflict_do_update(
            constraint="video_progress_user_id_course_id_key",
            set_={
                "watch_percentage": func.greatest(VideoProgress.watch_percentage, stmt.excluded.watch_percentage),
                "completed": or_(VideoProgress.completed, stmt.excluded.completed),
                "completed_at": func.coalesce(VideoProgress.completed_at, stmt.excluded.completed_at),
                "last_watched_at": stmt.excluded.last_watched_at,
            },
        )
        await self.db.execute(stmt)

    @translate_errors
    async def claim_video_xp(self, user_id: str, course_id: str) -> bool:
        result = await self.db.execute(
            update(VideoProgress)
            .where(
                VideoProgress.user_id == user_id,
                VideoProgress.course_id == course_id,
                VideoProgress.completed.is_(True),
                VideoProgress.xp_awarded.is_(False),
            )
            .values(xp_awarded=True)
            .returning(VideoProgress.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def increment_course_completions(self, course_id: str) -> None:
        await self.db.execute(
            update(Course)
            .where(Course.id == course_id)
            .values(completion_count=Course.completion_count + 1)
            .execution_options(synchronize_session=False)
        )

    @translate_errors
    async def course_progress_summary(self, user_id: str) -> CourseProgressSummary:
        total = await self.db.scalar(
            select(func.count()).select_from(Course).where(Course.is_active.is_(True))
        )
        counts = (
            await self.db.execute(
                select(
                    func.count().filter(VideoProgress.completed.is_(True)),
                    func.count().filter(
                        and_(VideoProgress.completed.is_(False), VideoProgress.watch_percentage > 0)
                    ),
                ).where(VideoProgress.user_id == user_id)
            )
        ).one()
        return CourseProgressSummary(
            total_courses=int(total or 0),
            in_progress=int(counts[1] or 0),
            completed=int(counts[0] or 0),
        )

    @translate_errors
    async def list_recent_video_progress(
        self, user_id: str, limit: int
    ) -> list[tuple[VideoProgressRecord, CourseRecord]]:
        result = await self.db.execute(
            select(VideoProgress, Course)
            .join(Course, Course.id == VideoProgress.course_id)
            .where(VideoProgress.user_id == user_id)
            .order_by(VideoProgress.last_watched_at.desc().nulls_last(), VideoProgress.id.desc())
            .limit(limit)
        )
        return [(_video_record(progress), _course_record(course)) for progress, course in result.all()]

    # ── Resources ──

    @translate_errors
    async def get_resource(self, resource_id: str) -> ResourceRecord | None:
        row = (await self.db.execute(select(Resource).where(Resource.id == resource_id))).scalar_one_or_none()
        return _resource_record(row) if row is not None else None

    @translate_errors
    async def insert_download_if_absent(self, record: DownloadRecord) -> bool:
        stmt = (
            pg_insert(ResourceDownload)
            .values(
                user_id=record.user_id,
                resource_id=record.resource_id,
                downloaded=record.downloaded,
                downloaded_at=record.downloaded_at,
                xp_awarded=record.xp_awarded,
            )
            .on_conflict_do_nothing(constraint="resource_downloads_user_id_resource_id_key")
            .returning(ResourceDownload.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def claim_first_download(
        self, user_id: str, resource_id: str, at: datetime, xp_awarded: bool
    ) -> bool:
        """Flip a rating-only row to downloaded; true for the one caller that flips it."""
        result = await self.db.execute(
            update(ResourceDownload)
            .where(
                ResourceDownload.user_id == user_id,
                ResourceDownload.resource_id == resource_id,
                ResourceDownload.downloaded.is_(False),
            )
            .values(downloaded=True, downloaded_at=at, xp_awarded=xp_awarded)
            .returning(ResourceDownload.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def touch_download(self, user_id: str, resource_id: str, at: datetime) -> None:
        await self.db.execute(
            update(ResourceDownload)
            .where(ResourceDownload.user_id == user_id, ResourceDownload.resource_id == resource_id)
            .values(downloaded_at=at)
            .execution_options(synchronize_session=False)
        )

    @translate_errors
    async def increment_resource_downloads(self, resource_id: str) -> None:
        await self.db.execute(
            update(Resource)
            .where(Resource.id == resource_id)
            .values(download_count=Resource.download_count + 1)
            .execution_options(synchronize_session=False)
        )

    @translate_errors
    async def save_rating(
        self, user_id: str, resource_id: str, rating: int, review: str | None, at: datetime
    ) -> DownloadRecord:
        stmt = pg_insert(ResourceDownload).values(
            user_id=user_id,
            resource_id=resource_id,
            downloaded=False,
            downloaded_at=at,
            rating=rating,
            review=review or "",
        )
        stmt = stmt.on_conflict_do_update(
            constraint="resource_downloads_user_id_resource_id_key",
            set_={
                "rating": stmt.excluded.rating,
                "review": ResourceDownload.review if review is None else stmt.excluded.review,
            },
        ).returning(ResourceDownload)
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return _download_record(result.scalar_one())

    @translate_errors
    async def refresh_resource_rating(self, resource_id: str) -> tuple[float, int]:
        average, count = (
            await self.db.execute(
                select(func.round(func.avg(ResourceDownload.rating), 1), func.count(ResourceDownload.rating))
                .where(ResourceDownload.resource_id == resource_id, ResourceDownload.rating.is_not(None))
            )
        ).one()
        average = float(average or 0)
        count = int(count or 0)
        await self.db.execute(
            update(Resource)
            .where(Resource.id == resource_id)
            .values(average_rating=average, rating_count=count)
            .execution_options(synchronize_session=False)
        )
        return average, count

    @translate_errors
    async def list_downloads(
        self, user_id: str, limit: int, offset: int
    ) -> tuple[list[tuple[DownloadRecord, ResourceRecord]], int]:
        filters = [ResourceDownload.user_id == user_id, ResourceDownload.downloaded.is_(True)]
        total = await self.db.scalar(select(func.count()).select_from(ResourceDownload).where(*filters))
        result = await self.db.execute(
            select(ResourceDownload, Resource)
            .join(Resource, Resource.id == ResourceDownload.resource_id)
            .where(*filters)
            .order_by(ResourceDownload.downloaded_at.desc(), ResourceDownload.id.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = [(_download_record(download), _resource_record(resource)) for download, resource in result.all()]
        return rows, int(total or 0)

    # ── Training sessions ──

    @translate_errors
    async def get_session(self, session_id: str) -> TrainingSessionRecord | None:
        result = await self.db.execute(select(TrainingSession).where(TrainingSession.id == session_id))
        row = result.scalar_one_or_none()
        return _session_record(row) if row is not None else None

    @translate_errors
    async def get_registration(self, user_id: str, session_id: str) -> RegistrationRecord | None:
        result = await self.db.execute(
            select(SessionRegistration)
            .where(SessionRegistration.user_id == user_id, SessionRegistration.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _registration_record(row) if row is not None else None

    @translate_errors
    async def reserve_seat(self, session_id: str) -> bool:
        result = await self.db.execute(
            update(TrainingSession)
            .where(
                TrainingSession.id == session_id,
                TrainingSession.current_participants < TrainingSession.max_participants,
            )
            .values(current_participants=TrainingSession.current_participants + 1)
            .returning(TrainingSession.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def create_registration(self, record: RegistrationRecord) -> bool:
        stmt = (
            pg_insert(SessionRegistration)
            .values(
                user_id=record.user_id,
                session_id=record.session_id,
                registered_at=record.registered_at,
            )
            .on_conflict_do_nothing(constraint="session_registrations_user_id_session_id_key")
            .returning(SessionRegistration.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def mark_attended(self, user_id: str, session_id: str, duration: int) -> None:
        await self.db.execute(
            update(SessionRegistration)
            .where(
                SessionRegistration.user_id == user_id,
                SessionRegistration.session_id == session_id,
                SessionRegistration.attended.is_(False),
            )
            .values(attended=True, attended_duration=duration)
            .execution_options(synchronize_session=False)
        )

    @translate_errors
    async def claim_registration_xp(self, user_id: str, session_id: str) -> bool:
        result = await self.db.execute(
            update(SessionRegistration)
            .where(
                SessionRegistration.user_id == user_id,
                SessionRegistration.session_id == session_id,
                SessionRegistration.attended.is_(True),
                SessionRegistration.xp_awarded.is_(False),
            )
            .values(xp_awarded=True)
            .returning(SessionRegistration.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def save_session_feedback(
        self, user_id: str, session_id: str, rating: int, feedback: str
    ) -> bool:
        result = await self.db.execute(
            update(SessionRegistration)
            .where(SessionRegistration.user_id == user_id, SessionRegistration.session_id == session_id)
            .values(rating=rating, feedback=feedback)
            .returning(SessionRegistration.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def list_registrations(
        self, user_id: str
    ) -> list[tuple[RegistrationRecord, TrainingSessionRecord]]:
        result = await self.db.execute(
            select(SessionRegistration, TrainingSession)
            .join(TrainingSession, TrainingSession.id == SessionRegistration.session_id)
            .where(SessionRegistration.user_id == user_id)
            .order_by(SessionRegistration.registered_at.desc(), SessionRegistration.id.desc())
            .execution_options(populate_existing=True)
        )
        return [
            (_registration_record(registration), _session_record(session))
            for registration, session in result.all()
        ]

    # ── Evaluations ──

    @translate_errors
    async def get_evaluation(self, evaluation_id: str) -> EvaluationRecord | None:
        result = await self.db.execute(select(Evaluation).where(Evaluation.id == evaluation_id))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return EvaluationRecord(
            id=str(row.id),
            title=row.title,
            checklist_items=list(row.checklist_items or []),
            total_points=row.total_points,
            passing_score=row.passing_score,
            is_active=row.is_active,
        )

    @translate_errors
    async def get_user_evaluation(self, user_id: str, evaluation_id: str) -> UserEvaluationRecord | None:
        result = await self.db.execute(
            select(UserEvaluation)
            .where(UserEvaluation.user_id == user_id, UserEvaluation.evaluation_id == evaluation_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _user_evaluation_record(row) if row is not None else None

    @translate_errors
    async def get_user_evaluation_by_id(self, user_evaluation_id: str) -> UserEvaluationRecord | None:
        result = await self.db.execute(
            select(UserEvaluation)
            .where(UserEvaluation.id == user_evaluation_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _user_evaluation_record(row) if row is not None else None

    @translate_errors
    async def create_user_evaluation(self, record: UserEvaluationRecord) -> UserEvaluationRecord:
        stmt = (
            pg_insert(UserEvaluation)
            .values(
                id=record.id,
                user_id=record.user_id,
                evaluation_id=record.evaluation_id,
                completed_items=record.completed_items,
                status=record.status,
            )
            .on_conflict_do_nothing(constraint="user_evaluations_user_id_evaluation_id_key")
        )
        await self.db.execute(stmt)
        existing = await self.get_user_evaluation(record.user_id, record.evaluation_id)
        assert existing is not None
        return existing

    @translate_errors
    async def save_user_evaluation(self, record: UserEvaluationRecord, expected_status: str) -> bool:
        result = await self.db.execute(
            update(UserEvaluation)
            .where(UserEvaluation.id == record.id, UserEvaluation.status == expected_status)
            .values(
                completed_items=record.completed_items,
                score=record.score,
                percentage=record.percentage,
                status=record.status,
                submitted_at=record.submitted_at,
                reviewed_at=record.reviewed_at,
                reviewed_by=record.reviewed_by,
                feedback=record.feedback,
                certificate_id=record.certificate_id,
            )
            .returning(UserEvaluation.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def list_evaluation_history(self, user_id: str) -> list[EvaluationHistoryEntry]:
        result = await self.db.execute(
            select(UserEvaluation, Evaluation.title, Certificate.certificate_number)
            .join(Evaluation, Evaluation.id == UserEvaluation.evaluation_id)
            .outerjoin(Certificate, Certificate.id == UserEvaluation.certificate_id)
            .where(UserEvaluation.user_id == user_id)
            .order_by(UserEvaluation.created_at.desc(), UserEvaluation.id)
            .execution_options(populate_existing=True)
        )
        return [
            EvaluationHistoryEntry(
                attempt=_user_evaluation_record(attempt),
                evaluation_title=title,
                certificate_number=number,
            )
            for attempt, title, number in result.all()
        ]

    @translate_errors
    async def create_certificate(self, record: CertificateRecord) -> None:
        self.db.add(Certificate(
            id=record.id,
            user_id=record.user_id,
            evaluation_id=record.evaluation_id,
            title=record.title,
            recipient_name=record.recipient_name,
            certificate_number=record.certificate_number,
            issued_at=record.issued_at,
        ))
        await self.db.flush()

    @translate_errors
    async def get_certificate_by_number(self, certificate_number: str) -> CertificateRecord | None:
        result = await self.db.execute(
            select(Certificate).where(Certificate.certificate_number == certificate_number)
        )
        row = result.scalar_one_or_none()
        return _certificate_record(row) if row is not None else None

    @translate_errors
    async def list_certificates(self, user_id: str) -> list[CertificateRecord]:
        result = await self.db.execute(
            select(Certificate)
            .where(Certificate.user_id == user_id)
            .order_by(Certificate.issued_at.desc())
        )
        return [_certificate_record(row) for row in result.scalars().all()]

    @translate_errors
    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
