"""
TextLens Backend — User SQLAlchemy Model
==========================================

What:  ORM model representing the `users` table.
Why:   Documents are owned by users; the row exists so the foreign key holds.
How:   The primary key is the subject claim of the caller's bearer token,
       so there is no local sign-up flow and no password column.
Who:   Written by DocumentService.upsert_user on a caller's first upload.

Lifecycle:
    Created on first upload, then never modified by this service
    ("first write wins" — later uploads with different email/name do not
    overwrite the stored values). Never deleted.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from textlens.database import Base

if TYPE_CHECKING:
    from textlens.models.document import Document


class User(Base):
    """An authenticated caller, keyed by the identity provider's subject id."""

    __tablename__ = "users"

    # What: External identity subject (JWT `sub`, or `id` as a fallback)
    # Why String: Identity providers use opaque ids (UUIDs, numeric strings, ...)
    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Identity provider subject id",
    )

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        comment="Email from the first token seen for this user",
    )

    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        default=None,
    )

    avatar_url: Mapped[Optional[str]] = mapped_column(
        String(2048),
        nullable=True,
        default=None,
        comment="Profile picture URL from the token's `picture` claim",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    documents: Mapped[List["Document"]] = relationship(
        back_populates="owner",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<User(id='{self.id}', email='{self.email}')>"
