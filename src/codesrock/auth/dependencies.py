"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from codesrock.auth.jwt import verify_token
from codesrock.dependencies import get_gamification_repo
from codesrock.gamification.records import ProfileRecord
from codesrock.gamification.repository import GamificationRepository

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    repo: GamificationRepository = Depends(get_gamification_repo),
) -> ProfileRecord:
    """
    Verify the bearer token and load the caller's profile.

    Raises 401 for a missing or invalid token, 404 when the profile does
    not exist and 403 for deactivated accounts.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=f"Not authorized, {e}") from e

    profile = await repo.get_profile(str(payload["sub"]))
    if profile is None:
        raise HTTPException(status_code=404, detail="User profile not found")
    if not profile.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    return profile


async def require_admin(user: ProfileRecord = Depends(get_current_user)) -> ProfileRecord:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def ensure_self_or_admin(
    user: ProfileRecord,
    user_id: str,
    detail: str = "Not authorized to modify another user's progress",
) -> None:
    """403 unless the caller is ``user_id`` or an admin."""
    if user.id != user_id and user.role != "admin":
        raise HTTPException(status_code=403, detail=detail)
