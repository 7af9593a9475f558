"""
TextLens Backend — Request Dependencies
=========================================

What:  FastAPI dependencies shared by the /ocr routes.
How:   get_current_user reads `Authorization: Bearer <token>`, verifies it,
       and stores the resulting CallerIdentity on request.state.user so the
       logging middleware can include it.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from textlens.exceptions import AuthenticationError
from textlens.schemas.auth import CallerIdentity
from textlens.services.auth_service import auth_service

# auto_error=False: a missing header must go through our 401 handler, not
# FastAPI's default 403.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CallerIdentity:
    """Resolves the caller or raises AuthenticationError (→ 401)."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(context={"reason": "missing_bearer_token"})

    identity = auth_service.verify_token(credentials.credentials)
    request.state.user = identity
    return identity
