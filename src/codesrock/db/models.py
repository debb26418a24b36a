"""ORM models matching the Alembic schema.

User ids are UUID strings issued by the external auth provider.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codesrock.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class Profile(Base):
    """Maps to the 'profiles' table (one row per auth user)."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, server_default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, server_default="")
    role: Mapped[str] = mapped_column(String(32), nullable=False, server_default="teacher")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


# ---------------------------------------------------------------------------
# Gamification
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Denormalized XP, level and streak state; one row per user."""

    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    current_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    level_name: Mapped[str] = mapped_column(String(64), nullable=False, server_default="Code Cadet")
    streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


class Activity(Base):
    """Append-only activity log; the record of every XP grant."""

    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    activity_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, server_default="{}")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


class Badge(Base):
    """Badge definitions with a declarative requirement."""

    __tablename__ = "badges"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(32), nullable=False, server_default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, server_default="common")
    requirement: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, server_default="{}")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


class UserBadge(Base):
    """Badges earned by users. UNIQUE(user_id, badge_id) prevents duplicates."""

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="user_badges_user_id_badge_id_key"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    badge_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("badges.id"), nullable=False)
    category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))

    badge: Mapped[Badge] = relationship("Badge", lazy="joined")


# ---------------------------------------------------------------------------
# Learning: courses, resources, sessions, evaluations
# ---------------------------------------------------------------------------


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    completion_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")


class VideoProgress(Base):
    """Per (user, course) watch state; xp_awarded guards the completion XP."""

    __tablename__ = "video_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="video_progress_user_id_course_id_key"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    watch_percentage: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    xp_awarded: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    last_watched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Resource(Base):
    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    average_rating: Mapped[float] = mapped_column(Numeric(2, 1, asdecimal=False), nullable=False, server_default="0")
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")


class ResourceDownload(Base):
    """Per (user, resource) interaction. A rating may create the row before the first download."""

    __tablename__ = "resource_downloads"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_id", name="resource_downloads_user_id_resource_id_key"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    resource_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("resources.id", ondelete="CASCADE"), nullable=False
    )
    downloaded: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    downloaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    xp_awarded: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    rating: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    review: Mapped[str] = mapped_column(Text, nullable=False, server_default="")


class TrainingSession(Base):
    __tablename__ = "training_sessions"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="scheduled")
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False, server_default="50")
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")


class SessionRegistration(Base):
    __tablename__ = "session_registrations"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="session_registrations_user_id_session_id_key"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False
    )
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attended: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    attended_duration: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    xp_awarded: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    rating: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    feedback: Mapped[str] = mapped_column(Text, nullable=False, server_default="")


class Evaluation(Base):
    __tablename__ = "evaluations"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    checklist_items: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, server_default="[]")
    total_points: Mapped[int] = mapped_column(Integer, nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, server_default="70")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")


class UserEvaluation(Base):
    """Evaluation attempt: in-progress -> submitted -> approved | rejected."""

    __tablename__ = "user_evaluations"
    __table_args__ = (
        UniqueConstraint("user_id", "evaluation_id", name="user_evaluations_user_id_evaluation_id_key"),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    evaluation_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False
    )
    completed_items: Mapped[list[str]] = mapped_column(JSONB, nullable=False, server_default="[]")
    score: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    percentage: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="in-progress")
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    feedback: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    certificate_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))


class Certificate(Base):
    __tablename__ = "certificates"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    evaluation_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("evaluations.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    recipient_name: Mapped[str] = mapped_column(String(256), nullable=False, server_default="")
    certificate_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
