"""
TextLens Backend — Bearer Token Verification
==============================================

What:  Verifies HS256 bearer tokens and turns their payload into a CallerIdentity.
Why:   Every /ocr endpoint is owner-scoped; the identity decides which rows
       a request may see.
How:   python-jose checks signature and `exp`; we additionally cap token age
       from `iat`, then validate the claims into the CallerIdentity model.
Who:   Called by the get_current_user dependency before any route logic.

Tokens are issued by the frontend's identity provider using the shared
JWT_SECRET. issue_token() exists for local tooling and the test suite.
"""

import logging
import time
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from textlens.config import settings
from textlens.exceptions import AuthenticationError
from textlens.schemas.auth import CallerIdentity

logger = logging.getLogger(__name__)


class AuthService:
    """Verifies and issues bearer tokens signed with a shared secret."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        max_age_seconds: Optional[int] = None,
    ):
        self.secret = settings.jwt_secret if secret is None else secret
        self.algorithm = algorithm or settings.jwt_algorithm
        self.max_age_seconds = max_age_seconds or settings.jwt_max_age_seconds

    def verify_token(self, token: str) -> CallerIdentity:
        """
        Verify a bearer token and resolve the caller.

        Checks, in order:
            1. A secret is configured (otherwise nothing can be trusted)
            2. Signature and `exp` (python-jose; `exp` is required)
            3. Age: `iat` no older than max_age_seconds
            4. Claims: an id (`sub` or `id`) and an email

        Raises:
            AuthenticationError: Any check failed. The reason is only logged.
        """
        if not self.secret:
            logger.error("JWT_SECRET is not configured; rejecting all tokens")
            raise AuthenticationError(context={"reason": "secret_not_configured"})

        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require_exp": True, "verify_aud": False},
            )
        except ExpiredSignatureError:
            raise AuthenticationError(
                message="Token has expired",
                context={"reason": "expired"},
            )
        except JWTError as e:
            raise AuthenticationError(
                message="Invalid token",
                context={"reason": "invalid", "error": str(e)},
            )

        self._check_age(payload)
        return self._identity_from_payload(payload)

    def _check_age(self, payload: Dict[str, Any]) -> None:
        issued_at = payload.get("iat")
        if issued_at is None:
            return
        if not isinstance(issued_at, (int, float)):
            raise AuthenticationError(
                message="Invalid token",
                context={"reason": "malformed_iat"},
            )
        if time.time() - issued_at > self.max_age_seconds:
            raise AuthenticationError(
                message="Token has expired",
                context={"reason": "too_old", "iat": issued_at},
            )

    def _identity_from_payload(self, payload: Dict[str, Any]) -> CallerIdentity:
        subject = payload.get("sub") or payload.get("id")
        try:
            return CallerIdentity(
                id=str(subject) if subject is not None else "",
                email=payload.get("email") or "",
                name=payload.get("name"),
                avatar=payload.get("picture"),
            )
        except PydanticValidationError as e:
            raise AuthenticationError(
                message="Token does not identify a user",
                context={"reason": "claims", "errors": e.error_count()},
            )

    def issue_token(self, identity: CallerIdentity, expires_in: Optional[int] = None) -> str:
        """
        Sign a token for `identity` that expires after `expires_in` seconds
        (default: max_age_seconds, one hour).
        """
        now = int(time.time())
        claims: Dict[str, Any] = {
            "sub": identity.id,
            "email": identity.email,
            "iat": now,
            "exp": now + (expires_in if expires_in is not None else self.max_age_seconds),
        }
        if identity.name is not None:
            claims["name"] = identity.name
        if identity.avatar is not None:
            claims["picture"] = identity.avatar
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
