"""
HS256 JWT verification for tokens issued by the auth provider.

The provider signs access tokens with a shared secret; ``sub`` is the
profile UUID. ``create_access_token`` mints compatible tokens for local
development and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from codesrock.config import get_settings


def create_access_token(user_id: str, email: str = "", expires_in: timedelta | None = None) -> str:
    """
    Create an access token shaped like the provider's.

    Args:
        user_id: The profile UUID, stored as ``sub``.
        email: The user's email address.
        expires_in: Lifetime override; defaults to the configured expiry.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + lifetime,
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)
    return payload
