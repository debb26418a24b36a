"""Storage seam for the gamification ruleset.

Services only talk to a ``GamificationRepository``. The SQL implementation
pushes the XP increment and the badge uniqueness check down to PostgreSQL so
both hold under concurrent requests.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from typing import Any, Protocol, TypeVar

from sqlalchemy import case, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codesrock.db.models import Activity, Badge, Profile, UserBadge, UserProgress
from codesrock.errors import PersistenceError
from codesrock.gamification.levels import LEVELS
from codesrock.gamification.records import (
    ActivityEntry,
    BadgeRecord,
    EarnedBadge,
    LeaderboardEntry,
    ProfileRecord,
    ProgressSnapshot,
    utcnow,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GamificationRepository(Protocol):
    async def get_profile(self, user_id: str) -> ProfileRecord | None: ...

    async def record_login(self, user_id: str, at: datetime) -> None: ...

    async def get_progress(self, user_id: str) -> ProgressSnapshot | None: ...

    async def create_progress(self, user_id: str) -> ProgressSnapshot: ...

    async def increment_xp(self, user_id: str, amount: int) -> ProgressSnapshot: ...

    async def set_streak(
        self,
        user_id: str,
        streak: int,
        longest_streak: int,
        last_activity_date: date,
        expected_last_activity_date: date | None,
    ) -> bool: ...

    async def append_activity(self, entry: ActivityEntry) -> None: ...

    async def list_activities(
        self, user_id: str, limit: int, offset: int, activity_type: str | None = None
    ) -> tuple[list[ActivityEntry], int]: ...

    async def list_badges(
        self, category: str | None = None, is_active: bool | None = None
    ) -> list[BadgeRecord]: ...

    async def get_badge(self, badge_id: str) -> BadgeRecord | None: ...

    async def list_unearned_badges(self, user_id: str) -> list[BadgeRecord]: ...

    async def insert_badge_if_absent(self, user_id: str, badge: BadgeRecord) -> EarnedBadge | None: ...

    async def list_user_badges(self, user_id: str) -> list[EarnedBadge]: ...

    async def leaderboard(self, limit: int) -> list[LeaderboardEntry]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


def translate_errors(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Re-raise driver and ORM failures as ``PersistenceError``."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Store operation %s failed", fn.__name__, exc_info=True)
            raise PersistenceError("Database operation failed") from exc

    return wrapper


# ---------------------------------------------------------------------------
# Row -> record conversion
# ---------------------------------------------------------------------------


def profile_record(row: Profile) -> ProfileRecord:
    return ProfileRecord(
        id=str(row.id),
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        role=row.role,
        is_active=row.is_active,
        last_login=row.last_login,
    )


def _progress_record(row: UserProgress) -> ProgressSnapshot:
    return ProgressSnapshot(
        user_id=str(row.user_id),
        current_xp=row.current_xp,
        total_xp=row.total_xp,
        current_level=row.current_level,
        level_name=row.level_name,
        streak=row.streak,
        longest_streak=row.longest_streak,
        last_activity_date=row.last_activity_date,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _badge_record(row: Badge) -> BadgeRecord:
    return BadgeRecord(
        id=str(row.id),
        name=row.name,
        description=row.description,
        icon=row.icon,
        category=row.category,
        requirement=dict(row.requirement or {}),
        xp_reward=row.xp_reward,
        rarity=row.rarity,
        is_active=row.is_active,
    )


def _activity_record(row: Activity) -> ActivityEntry:
    return ActivityEntry(
        user_id=str(row.user_id),
        type=row.type,
        description=row.description,
        xp_earned=row.xp_earned,
        metadata=dict(row.activity_metadata or {}),
        timestamp=row.timestamp,
    )


def _level_columns(new_total: Any) -> tuple[Any, Any]:
    """CASE expressions deriving level number and name from a total XP expression."""
    ordered = sorted(LEVELS, key=lambda d: d.min_xp, reverse=True)
    level = case(*[(new_total >= d.min_xp, d.level) for d in ordered], else_=LEVELS[0].level)
    name = case(*[(new_total >= d.min_xp, d.name) for d in ordered], else_=LEVELS[0].name)
    return level, name


class SqlGamificationRepository:
    """PostgreSQL-backed repository over a request-scoped ``AsyncSession``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @translate_errors
    async def get_profile(self, user_id: str) -> ProfileRecord | None:
        result = await self.db.execute(select(Profile).where(Profile.id == user_id))
        row = result.scalar_one_or_none()
        return profile_record(row) if row is not None else None

    @translate_errors
    async def record_login(self, user_id: str, at: datetime) -> None:
        await self.db.execute(
            update(Profile)
            .where(Profile.id == user_id)
            .values(last_login=at)
            .execution_options(synchronize_session=False)
        )

    @translate_errors
    async def get_progress(self, user_id: str) -> ProgressSnapshot | None:
        result = await self.db.execute(
            select(UserProgress)
            .where(UserProgress.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _progress_record(row) if row is not None else None

    @translate_errors
    async def create_progress(self, user_id: str) -> ProgressSnapshot:
        stmt = pg_insert(UserProgress).values(user_id=user_id)
        stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
        await self.db.execute(stmt)
        result = await self.db.execute(
            select(UserProgress)
            .where(UserProgress.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return _progress_record(result.scalar_one())

    @translate_errors
    async def increment_xp(self, user_id: str, amount: int) -> ProgressSnapshot:
        # Every SET expression reads the pre-update row, so the level is
        # derived from the same total this statement writes.
        new_total = UserProgress.total_xp + amount
        level, level_name = _level_columns(new_total)
        stmt = (
            update(UserProgress)
            .where(UserProgress.user_id == user_id)
            .values(
                total_xp=new_total,
                current_xp=new_total,
                current_level=level,
                level_name=level_name,
                updated_at=func.now(),
            )
            .returning(UserProgress)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return _progress_record(result.scalar_one())

    @translate_errors
    async def set_streak(
        self,
        user_id: str,
        streak: int,
        longest_streak: int,
        last_activity_date: date,
        expected_last_activity_date: date | None,
    ) -> bool:
        # Compare-and-set on the date that was read; a concurrent writer wins.
        result = await self.db.execute(
            update(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.last_activity_date.is_not_distinct_from(expected_last_activity_date),
            )
            .values(
                streak=streak,
                longest_streak=longest_streak,
                last_activity_date=last_activity_date,
                updated_at=func.now(),
            )
            .returning(UserProgress.user_id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    @translate_errors
    async def append_activity(self, entry: ActivityEntry) -> None:
        self.db.add(Activity(
            user_id=entry.user_id,
            type=entry.type,
            description=entry.description,
            xp_earned=entry.xp_earned,
            activity_metadata=entry.metadata,
            timestamp=entry.timestamp,
        ))
        await self.db.flush()

    @translate_errors
    async def list_activities(
        self, user_id: str, limit: int, offset: int, activity_type: str | None = None
    ) -> tuple[list[ActivityEntry], int]:
        filters = [Activity.user_id == user_id]
        if activity_type:
            filters.append(Activity.type == activity_type)

        total = await self.db.scalar(select(func.count()).select_from(Activity).where(*filters))
        result = await self.db.execute(
            select(Activity)
            .where(*filters)
            .order_by(Activity.timestamp.desc(), Activity.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [_activity_record(row) for row in result.scalars().all()], int(total or 0)

    @translate_errors
    async def list_badges(
        self, category: str | None = None, is_active: bool | None = None
    ) -> list[BadgeRecord]:
        query = select(Badge)
        if category:
            query = query.where(Badge.category == category)
        if is_active is not None:
            query = query.where(Badge.is_active == is_active)
        result = await self.db.execute(query.order_by(Badge.category, Badge.name))
        return [_badge_record(row) for row in result.scalars().all()]

    @translate_errors
    async def get_badge(self, badge_id: str) -> BadgeRecord | None:
        result = await self.db.execute(select(Badge).where(Badge.id == badge_id))
        row = result.scalar_one_or_none()
        return _badge_record(row) if row is not None else None

    @translate_errors
    async def list_unearned_badges(self, user_id: str) -> list[BadgeRecord]:
        earned = select(UserBadge.id).where(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == Badge.id,
        )
        result = await self.db.execute(
            select(Badge)
            .where(Badge.is_active.is_(True), ~earned.exists())
            .order_by(Badge.name)
        )
        return [_badge_record(row) for row in result.scalars().all()]

    @translate_errors
    async def insert_badge_if_absent(self, user_id: str, badge: BadgeRecord) -> EarnedBadge | None:
        stmt = (
            pg_insert(UserBadge)
            .values(
                user_id=user_id,
                badge_id=badge.id,
                category=badge.category,
                earned_at=utcnow(),
            )
            .on_conflict_do_nothing(constraint="user_badges_user_id_badge_id_key")
            .returning(UserBadge.earned_at)
        )
        result = await self.db.execute(stmt)
        earned_at = result.scalar_one_or_none()
        if earned_at is None:
            return None
        return EarnedBadge(user_id=user_id, badge_id=badge.id, earned_at=earned_at, badge=badge)

    @translate_errors
    async def list_user_badges(self, user_id: str) -> list[EarnedBadge]:
        result = await self.db.execute(
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc())
        )
        return [
            EarnedBadge(
                user_id=str(row.user_id),
                badge_id=str(row.badge_id),
                earned_at=row.earned_at,
                badge=_badge_record(row.badge),
            )
            for row in result.scalars().all()
        ]

    @translate_errors
    async def leaderboard(self, limit: int) -> list[LeaderboardEntry]:
        badge_count = (
            select(func.count(UserBadge.id))
            .where(UserBadge.user_id == UserProgress.user_id)
            .correlate(UserProgress)
            .scalar_subquery()
        )
        result = await self.db.execute(
            select(UserProgress, Profile, badge_count.label("badge_count"))
            .join(Profile, Profile.id == UserProgress.user_id)
            .where(Profile.is_active.is_(True))
            .order_by(UserProgress.total_xp.desc(), UserProgress.user_id)
            .limit(limit)
        )
        return [
            LeaderboardEntry(
                user=profile_record(profile),
                total_xp=progress.total_xp,
                current_level=progress.current_level,
                level_name=progress.level_name,
                badge_count=int(count or 0),
                streak=progress.streak,
            )
            for progress, profile, count in result.all()
        ]

    @translate_errors
    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
