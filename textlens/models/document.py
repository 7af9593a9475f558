"""
TextLens Backend — Document SQLAlchemy Model
==============================================

What:  ORM model representing the `documents` table.
Why:   One row per uploaded image: where the file lives, what OCR read from
       it, and who owns it.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Written by the upload workflow; read by list and explain.

Table Design Rationale:
    - Integer primary key: the explain endpoint takes a numeric document id
    - file_url: Path relative to STORAGE_ROOT, never the binary itself
    - text: Nullable so a row could exist before OCR; the upload workflow
      only inserts after OCR succeeds, and the value is never updated
    - user_id: Required owner; every read is scoped by it

    Index on (user_id, created_at DESC):
        Matches the only list query: "this owner's documents, newest first"
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from textlens.database import Base

if TYPE_CHECKING:
    from textlens.models.user import User


class Document(Base):
    """
    An uploaded image and the text extracted from it.

    Lifecycle:
        1. Created after the file is stored and OCR succeeded
        2. Read by the list and explain endpoints
        3. Never updated or deleted through the API
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # What: Caller-supplied display name; also the field search matches on
    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        default=None,
    )

    # Format: YYYY/MM/DD/<uuid>.<ext>, relative to STORAGE_ROOT
    file_url: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        comment="Storage path of the uploaded image, relative to the storage root",
    )

    text: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="Text extracted by OCR",
    )

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )

    owner: Mapped["User"] = relationship(
        back_populates="documents",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return (
            f"<Document(id={self.id}, user_id='{self.user_id}', "
            f"created_at='{self.created_at}')>"
        )


# Serves the owner-scoped, newest-first listing
Index(
    "idx_documents_user_created_at",
    Document.user_id,
    Document.created_at.desc(),
)
