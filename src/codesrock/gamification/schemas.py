"""Request and response models for gamification endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any
from uuid import UUID

from pydantic import Field

from codesrock.gamification.levels import LevelDefinition, LevelResolution
from codesrock.gamification.records import (
    ActivityEntry,
    BadgeRecord,
    EarnedBadge,
    LeaderboardEntry,
    ProgressSnapshot,
    StreakResult,
    XPAwardResult,
)
from codesrock.schemas import CamelModel

PositiveXP = Annotated[int, Field(strict=True, gt=0)]


# --- Requests ---


class AddXPRequest(CamelModel):
    user_id: UUID
    amount: PositiveXP
    description: str = Field(min_length=3, max_length=200)
    metadata: dict[str, Any] = {}


class StreakRequest(CamelModel):
    user_id: UUID


class AwardBadgeRequest(CamelModel):
    user_id: UUID
    badge_id: UUID


# --- Levels ---


class LevelOut(CamelModel):
    level: int
    name: str
    min_xp: int = Field(alias="minXP")
    icon: str

    @classmethod
    def from_definition(cls, definition: LevelDefinition) -> LevelOut:
        return cls(level=definition.level, name=definition.name, min_xp=definition.min_xp, icon=definition.icon)


class LevelDetails(CamelModel):
    current: LevelOut
    next: LevelOut | None
    progress_to_next_level: int

    @classmethod
    def from_resolution(cls, resolution: LevelResolution) -> LevelDetails:
        return cls(
            current=LevelOut.from_definition(resolution.current),
            next=LevelOut.from_definition(resolution.next) if resolution.next else None,
            progress_to_next_level=resolution.progress_to_next_percent,
        )


# --- Badges ---


class BadgeOut(CamelModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    rarity: str
    requirement: dict[str, Any]
    xp_reward: int = Field(alias="xpReward")
    is_active: bool

    @classmethod
    def from_record(cls, badge: BadgeRecord) -> BadgeOut:
        return cls(
            id=badge.id,
            name=badge.name,
            description=badge.description,
            icon=badge.icon,
            category=badge.category,
            rarity=badge.rarity,
            requirement=badge.requirement,
            xp_reward=badge.xp_reward,
            is_active=badge.is_active,
        )


class EarnedBadgeOut(CamelModel):
    badge_id: str
    earned_at: datetime
    badge: BadgeOut | None = None

    @classmethod
    def from_record(cls, earned: EarnedBadge) -> EarnedBadgeOut:
        return cls(
            badge_id=earned.badge_id,
            earned_at=earned.earned_at,
            badge=BadgeOut.from_record(earned.badge) if earned.badge else None,
        )


class AwardBadgeOut(CamelModel):
    earned: EarnedBadgeOut
    xp_awarded: int = Field(alias="xpAwarded")
    new_total_xp: int | None = Field(default=None, alias="newTotalXP")


# --- Progress ---


class ProgressOut(CamelModel):
    user_id: str
    current_xp: int = Field(alias="currentXP")
    total_xp: int = Field(alias="totalXP")
    current_level: int
    level_name: str
    streak: int
    longest_streak: int
    last_activity_date: date | None = None
    badges: list[EarnedBadgeOut] = []
    level_details: LevelDetails

    @classmethod
    def build(
        cls,
        progress: ProgressSnapshot,
        badges: list[EarnedBadge],
        resolution: LevelResolution,
    ) -> ProgressOut:
        return cls(
            user_id=progress.user_id,
            current_xp=progress.current_xp,
            total_xp=progress.total_xp,
            current_level=progress.current_level,
            level_name=progress.level_name,
            streak=progress.streak,
            longest_streak=progress.longest_streak,
            last_activity_date=progress.last_activity_date,
            badges=[EarnedBadgeOut.from_record(b) for b in badges],
            level_details=LevelDetails.from_resolution(resolution),
        )


class XPAwardOut(CamelModel):
    xp_added: int = Field(alias="xpAdded")
    new_total_xp: int = Field(alias="newTotalXP")
    leveled_up: bool
    old_level: int
    new_level: int
    level_name: str
    badges_earned: list[EarnedBadgeOut] = []

    @classmethod
    def build(cls, amount: int, result: XPAwardResult, badges: list[EarnedBadge]) -> XPAwardOut:
        return cls(
            xp_added=amount,
            new_total_xp=result.new_total_xp,
            leveled_up=result.leveled_up,
            old_level=result.old_level,
            new_level=result.new_level,
            level_name=result.level_name,
            badges_earned=[EarnedBadgeOut.from_record(b) for b in badges],
        )


class StreakOut(CamelModel):
    current_streak: int
    streak_updated: bool
    streak_broken: bool
    badges_earned: list[EarnedBadgeOut] = []

    @classmethod
    def build(cls, result: StreakResult, badges: list[EarnedBadge]) -> StreakOut:
        return cls(
            current_streak=result.current_streak,
            streak_updated=result.streak_updated,
            streak_broken=result.streak_broken,
            badges_earned=[EarnedBadgeOut.from_record(b) for b in badges],
        )


# --- Leaderboard ---


class LeaderboardUser(CamelModel):
    id: str
    first_name: str
    last_name: str


class LeaderboardEntryOut(CamelModel):
    rank: int
    user: LeaderboardUser
    total_xp: int = Field(alias="totalXP")
    current_level: int
    level_name: str
    badge_count: int
    streak: int

    @classmethod
    def build(cls, rank: int, entry: LeaderboardEntry) -> LeaderboardEntryOut:
        return cls(
            rank=rank,
            user=LeaderboardUser(
                id=entry.user.id,
                first_name=entry.user.first_name,
                last_name=entry.user.last_name,
            ),
            total_xp=entry.total_xp,
            current_level=entry.current_level,
            level_name=entry.level_name,
            badge_count=entry.badge_count,
            streak=entry.streak,
        )


# --- Activity feed ---


class ActivityOut(CamelModel):
    type: str
    description: str
    xp_earned: int = Field(alias="xpEarned")
    metadata: dict[str, Any] = {}
    timestamp: datetime

    @classmethod
    def from_record(cls, entry: ActivityEntry) -> ActivityOut:
        return cls(
            type=entry.type,
            description=entry.description,
            xp_earned=entry.xp_earned,
            metadata=entry.metadata,
            timestamp=entry.timestamp,
        )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class ActivityFeedOut(CamelModel):
    activities: list[ActivityOut]
    pagination: Pagination
