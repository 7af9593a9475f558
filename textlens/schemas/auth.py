"""
TextLens Backend — Caller Identity Schema
===========================================

What:  The authenticated caller attached to every protected request.
Why:   Token payloads are arbitrary JSON; this is the one typed shape the
       rest of the code sees, validated once when the token is verified.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CallerIdentity(BaseModel):
    """
    Identity resolved from a verified bearer token.

    Claim mapping:
        id      ← `sub`, falling back to `id`
        email   ← `email`
        name    ← `name`
        avatar  ← `picture`
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=1, max_length=320)
    name: Optional[str] = Field(default=None, max_length=255)
    avatar: Optional[str] = Field(default=None, max_length=2048)
