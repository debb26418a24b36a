"""Pydantic models for auth endpoints."""

from __future__ import annotations

from datetime import datetime

from codesrock.gamification.records import ProfileRecord
from codesrock.gamification.schemas import ProgressOut, StreakOut
from codesrock.schemas import CamelModel


class UserOut(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    last_login: datetime | None = None

    @classmethod
    def from_record(cls, profile: ProfileRecord) -> UserOut:
        return cls(
            id=profile.id,
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            role=profile.role,
            last_login=profile.last_login,
        )


class SessionOut(CamelModel):
    user: UserOut
    progress: ProgressOut
    streak: StreakOut


class MeOut(CamelModel):
    user: UserOut
    progress: ProgressOut
