"""Constants and request helpers shared across test modules."""

from __future__ import annotations

from codesrock.auth.jwt import create_access_token

TEACHER_ID = "3f1c9a52-7d4e-4b8a-9c61-0a2b4c6d8e01"
OTHER_TEACHER_ID = "8a7b6c5d-4e3f-4a1b-8c9d-0e1f2a3b4c5d"
ADMIN_ID = "c0ffee00-1234-4cde-8f00-abcdefabcdef"
MISSING_ID = "00000000-0000-4000-8000-000000000000"


def bearer(user_id: str) -> dict[str, str]:
    """Authorization header carrying a freshly minted access token."""
    return {"Authorization": f"Bearer {create_access_token(user_id, f'{user_id[:8]}@example.com')}"}
