"""JWT tests: HS256 tokens shaped like the auth provider's."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from codesrock.auth.jwt import create_access_token, verify_token
from codesrock.config import get_settings
from tests.helpers import TEACHER_ID


class TestCreateAccessToken:
    def test_claims(self):
        token = create_access_token(TEACHER_ID, "ada@example.com")
        payload = verify_token(token)
        assert payload["sub"] == TEACHER_ID
        assert payload["email"] == "ada@example.com"
        assert payload["aud"] == "authenticated"
        assert payload["role"] == "authenticated"
        assert payload["exp"] > payload["iat"]

    def test_signed_with_shared_secret(self):
        token = create_access_token(TEACHER_ID)
        header = jwt.get_unverified_header(token)
        assert header["alg"] == "HS256"


class TestVerifyToken:
    def test_expired(self):
        token = create_access_token(TEACHER_ID, expires_in=timedelta(seconds=-5))
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_wrong_secret(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": TEACHER_ID, "aud": settings.jwt_audience, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "not-the-secret",
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_wrong_audience(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": TEACHER_ID, "aud": "service_role", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_missing_subject(self):
        settings = get_settings()
        token = jwt.encode(
            {"aud": settings.jwt_audience, "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_issuer_enforced_when_configured(self, monkeypatch):
        token = create_access_token(TEACHER_ID)
        monkeypatch.setenv("CODESROCK_JWT_ISSUER", "https://auth.codesrock.org")
        get_settings.cache_clear()

        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

        reissued = create_access_token(TEACHER_ID)
        assert verify_token(reissued)["iss"] == "https://auth.codesrock.org"

    def test_garbage(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token("not.a.jwt")
