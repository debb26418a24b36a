"""Plain records passed between repositories and gamification services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProfileRecord:
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: str = "teacher"
    is_active: bool = True
    last_login: datetime | None = None


@dataclass
class ProgressSnapshot:
    """One user's XP, level and streak state as the store holds it."""

    user_id: str
    current_xp: int = 0
    total_xp: int = 0
    current_level: int = 1
    level_name: str = "Code Cadet"
    streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class BadgeRecord:
    id: str
    name: str
    description: str
    icon: str
    category: str
    requirement: dict[str, Any]
    xp_reward: int = 0
    rarity: str = "common"
    is_active: bool = True


@dataclass
class EarnedBadge:
    user_id: str
    badge_id: str
    earned_at: datetime
    badge: BadgeRecord | None = None


@dataclass
class ActivityEntry:
    user_id: str
    type: str
    description: str
    xp_earned: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class LeaderboardEntry:
    user: ProfileRecord
    total_xp: int
    current_level: int
    level_name: str
    badge_count: int = 0
    streak: int = 0


@dataclass(frozen=True)
class XPAwardResult:
    new_total_xp: int
    leveled_up: bool
    old_level: int
    new_level: int
    level_name: str


@dataclass(frozen=True)
class StreakResult:
    current_streak: int
    streak_updated: bool
    streak_broken: bool
