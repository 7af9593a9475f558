"""
TextLens Backend — Auth Service Unit Tests
============================================

What we test:
    ✅ A freshly issued token resolves to the same identity
    ✅ Expired, too-old, tampered and wrongly-signed tokens are rejected
    ✅ Tokens without an id or email are rejected
    ✅ `id` is accepted when `sub` is absent; `picture` becomes avatar
    ✅ A missing secret rejects everything
"""

import time

import pytest
from jose import jwt

from textlens.exceptions import AuthenticationError
from textlens.schemas.auth import CallerIdentity
from textlens.services.auth_service import AuthService

SECRET = "unit-test-secret"


@pytest.fixture
def service():
    return AuthService(secret=SECRET, algorithm="HS256", max_age_seconds=3600)


def _sign(claims, secret=SECRET):
    return jwt.encode(claims, secret, algorithm="HS256")


class TestVerifyToken:
    """Tests for AuthService.verify_token()."""

    def test_round_trip_identity(self, service):
        identity = CallerIdentity(id="u1", email="a@x.com", name="Ana", avatar="http://p/a.png")
        token = service.issue_token(identity)

        resolved = service.verify_token(token)

        assert resolved == identity

    def test_accepts_id_claim_and_picture(self, service):
        now = int(time.time())
        token = _sign({
            "id": 42,
            "email": "n@x.com",
            "picture": "http://p/n.png",
            "iat": now,
            "exp": now + 60,
        })

        resolved = service.verify_token(token)

        assert resolved.id == "42"
        assert resolved.avatar == "http://p/n.png"
        assert resolved.name is None

    def test_expired_token_rejected(self, service):
        now = int(time.time())
        token = _sign({"sub": "u1", "email": "a@x.com", "iat": now - 120, "exp": now - 60})

        with pytest.raises(AuthenticationError, match="expired"):
            service.verify_token(token)

    def test_token_older_than_max_age_rejected(self, service):
        now = int(time.time())
        token = _sign({
            "sub": "u1",
            "email": "a@x.com",
            "iat": now - 7200,
            "exp": now + 3600,
        })

        with pytest.raises(AuthenticationError, match="expired"):
            service.verify_token(token)

    def test_missing_exp_rejected(self, service):
        token = _sign({"sub": "u1", "email": "a@x.com"})

        with pytest.raises(AuthenticationError):
            service.verify_token(token)

    def test_wrong_secret_rejected(self, service):
        now = int(time.time())
        token = _sign({"sub": "u1", "email": "a@x.com", "exp": now + 60}, secret="other")

        with pytest.raises(AuthenticationError, match="Invalid token"):
            service.verify_token(token)

    def test_garbage_rejected(self, service):
        with pytest.raises(AuthenticationError):
            service.verify_token("not-a-jwt")

    def test_missing_email_rejected(self, service):
        now = int(time.time())
        token = _sign({"sub": "u1", "iat": now, "exp": now + 60})

        with pytest.raises(AuthenticationError):
            service.verify_token(token)

    def test_missing_subject_rejected(self, service):
        now = int(time.time())
        token = _sign({"email": "a@x.com", "iat": now, "exp": now + 60})

        with pytest.raises(AuthenticationError):
            service.verify_token(token)

    def test_unconfigured_secret_rejects_everything(self):
        service = AuthService(secret="")

        with pytest.raises(AuthenticationError):
            service.verify_token("anything")
