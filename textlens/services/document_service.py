"""
TextLens Backend — Document Service (Persistence Gateway + Workflows)
=======================================================================

What:  Owns the users and documents tables, and orchestrates the upload
       and explain workflows on top of them.
Why:   Routes stay thin (HTTP only); all owner scoping lives in one place.
How:   Gateway methods take the request's AsyncSession and wrap every
       SQLAlchemy failure in DatabaseError. Workflow methods compose
       FileService, OCRService, the gateway, and GeminiService.
Who:   Called by the /ocr route handlers.

Upload Flow (POST /ocr/upload):
    ┌──────────┐    ┌────────────┐    ┌───────────┐    ┌─────────────────┐
    │ Validate │───▶│   Store    │───▶│    OCR    │───▶│ Upsert user +   │
    │ (type,   │    │ (FileServ) │    │ (OCRServ) │    │ insert document │
    │  size)   │    └────────────┘    └───────────┘    └─────────────────┘
    └──────────┘
    Validation fails → nothing stored, nothing written
    OCR, DB or commit fails → stored file removed, transaction rolled back

Explain Flow (POST /ocr/explain):
    find_document(id, caller) ─ None ─▶ NotFoundError (LLM never called)
                              └ doc ──▶ GeminiService.explain(doc.text, query)
"""

import logging
import math
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from textlens.config import settings
from textlens.exceptions import DatabaseError, NotFoundError, ValidationError
from textlens.models.document import Document
from textlens.models.user import User
from textlens.schemas.auth import CallerIdentity
from textlens.schemas.document import (
    DocumentListResponse,
    DocumentResponse,
    ExplainResponse,
)
from textlens.services.file_service import file_service
from textlens.services.gemini_service import gemini_service
from textlens.services.ocr_service import ocr_service

logger = logging.getLogger(__name__)

# documents.id is a 32-bit INTEGER
MAX_DOCUMENT_ID = 2**31 - 1


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so a search term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DocumentService:
    """
    Business logic layer for users and documents.

    Gateway:
        - upsert_user():     idempotent, first write wins
        - create_document(): insert one row
        - list_documents():  owner-scoped, searchable, offset-paginated
        - find_document():   owner-scoped lookup; foreign ids look missing

    Workflows:
        - upload_document(): validate → store → OCR → persist
        - explain_document(): lookup → LLM

    Stateless; the session is passed in on every call.
    """

    # ══════════════════════════════════════════════════════════════════════
    # Persistence Gateway
    # ══════════════════════════════════════════════════════════════════════

    async def upsert_user(
        self,
        db: AsyncSession,
        user_id: str,
        email: str,
        name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> None:
        """
        Create the user row if it does not exist; otherwise change nothing.

        Uses the dialect's INSERT ... ON CONFLICT (id) DO NOTHING so two
        concurrent first uploads by the same user cannot collide.
        """
        values = {"id": user_id, "email": email, "name": name, "avatar_url": avatar}

        try:
            dialect = db.get_bind().dialect.name
            if dialect == "postgresql":
                stmt = pg_insert(User).values(**values).on_conflict_do_nothing(
                    index_elements=[User.id]
                )
                await db.execute(stmt)
            elif dialect == "sqlite":
                stmt = sqlite_insert(User).values(**values).on_conflict_do_nothing(
                    index_elements=[User.id]
                )
                await db.execute(stmt)
            elif await db.get(User, user_id) is None:
                db.add(User(**values))
                await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error upserting user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not save the user. Please try again.",
                context={"user_id": user_id, "error_type": type(e).__name__},
            )

    async def create_document(
        self,
        db: AsyncSession,
        file_url: str,
        text: str,
        owner_id: str,
        name: Optional[str] = None,
    ) -> Document:
        """
        Insert a document row and return it with its id and created_at set.

        Raises:
            DatabaseError: Constraint violation or connectivity failure.
        """
        document = Document(name=name, file_url=file_url, text=text, user_id=owner_id)
        db.add(document)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating document for %s: %s", owner_id, str(e))
            raise DatabaseError(
                message="Could not save the document. Please try again.",
                context={"owner_id": owner_id, "error_type": type(e).__name__},
            )

        logger.info("Document %s created for user %s", document.id, owner_id)
        return document

    async def list_documents(
        self,
        db: AsyncSession,
        owner_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
        search: Optional[str] = None,
    ) -> DocumentListResponse:
        """
        One page of the owner's documents, newest first.

        Query plan:
            SELECT count(*) FROM documents WHERE user_id = :owner [AND name ILIKE :term]
            SELECT * FROM documents WHERE ... ORDER BY created_at DESC, id DESC
                LIMIT :page_size OFFSET (:page - 1) * :page_size
            → both use idx_documents_user_created_at

        Args:
            owner_id: Caller's id; no other owner's rows are ever returned
            page: 1-based page number; pages past the end are empty
            page_size: 1..LIST_MAX_PAGE_SIZE (default LIST_PAGE_SIZE)
            search: Case-insensitive substring of the document name

        Raises:
            ValidationError: page or page_size out of range
            DatabaseError: Query failed
        """
        if page_size is None:
            page_size = settings.list_page_size

        if page < 1:
            raise ValidationError(
                message="page must be 1 or greater.",
                field="page",
                context={"page": page},
            )
        if page_size < 1 or page_size > settings.list_max_page_size:
            raise ValidationError(
                message=f"pageSize must be between 1 and {settings.list_max_page_size}.",
                field="pageSize",
                context={"page_size": page_size},
            )

        filters = [Document.user_id == owner_id]
        term = (search or "").strip()
        if term:
            filters.append(Document.name.ilike(f"%{_escape_like(term)}%", escape="\\"))

        try:
            count_result = await db.execute(
                select(func.count(Document.id)).where(*filters)
            )
            total_count = count_result.scalar_one()

            offset = (page - 1) * page_size
            if offset >= total_count:
                # Past the last page: nothing to fetch, and huge offsets
                # never reach the driver.
                return DocumentListResponse(
                    documents=[],
                    current_page=page,
                    total_pages=math.ceil(total_count / page_size),
                )

            result = await db.execute(
                select(Document)
                .where(*filters)
                .order_by(Document.created_at.desc(), Document.id.desc())
                .offset(offset)
                .limit(page_size)
            )
            documents = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing documents: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve documents. Please try again.",
                context={"owner_id": owner_id, "error_type": type(e).__name__},
            )

        return DocumentListResponse(
            documents=[DocumentResponse.model_validate(doc) for doc in documents],
            current_page=page,
            total_pages=math.ceil(total_count / page_size),
        )

    async def find_document(
        self,
        db: AsyncSession,
        document_id: int,
        owner_id: str,
    ) -> Optional[Document]:
        """
        The document with this id if, and only if, it belongs to owner_id.

        Returns None both when the id does not exist and when another user
        owns it; callers cannot tell the two apart. Ids outside the column
        range cannot exist and are answered without a query.
        """
        if not 1 <= document_id <= MAX_DOCUMENT_ID:
            return None

        try:
            result = await db.execute(
                select(Document).where(
                    Document.id == document_id,
                    Document.user_id == owner_id,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching document %s: %s", document_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the document. Please try again.",
                context={"document_id": document_id, "error_type": type(e).__name__},
            )

    async def _commit(self, db: AsyncSession) -> None:
        """Commit the request's transaction; failures surface as DatabaseError."""
        try:
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("Database error on commit: %s", str(e))
            raise DatabaseError(
                message="Could not save the document. Please try again.",
                context={"stage": "commit", "error_type": type(e).__name__},
            )

    # ══════════════════════════════════════════════════════════════════════
    # Workflows
    # ══════════════════════════════════════════════════════════════════════

    async def upload_document(
        self,
        db: AsyncSession,
        identity: CallerIdentity,
        filename: str,
        content_type: Optional[str],
        content: bytes,
        name: Optional[str] = None,
    ) -> DocumentResponse:
        """
        Complete workflow: validate → store file → OCR → upsert user → insert document.

        Error Recovery:
            Validation fails → ValidationError (400), nothing stored
            Storage fails    → FileStorageError (500)
            OCR fails        → OCRProcessingError (500), file removed
            DB or commit fails → DatabaseError (500), file removed, rolled back
        """
        absolute_path, relative_path = await file_service.validate_and_store(
            filename=filename,
            content_type=content_type,
            content=content,
        )

        display_name = (name or "").strip() or None

        try:
            text = await ocr_service.extract_text(absolute_path)

            await self.upsert_user(
                db,
                user_id=identity.id,
                email=identity.email,
                name=identity.name,
                avatar=identity.avatar,
            )
            document = await self.create_document(
                db,
                file_url=relative_path,
                text=text,
                owner_id=identity.id,
                name=display_name,
            )
            await self._commit(db)
        except Exception:
            await file_service.cleanup_file(absolute_path)
            raise

        return DocumentResponse.model_validate(document)

    async def explain_document(
        self,
        db: AsyncSession,
        identity: CallerIdentity,
        document_id: int,
        query: str,
    ) -> ExplainResponse:
        """
        Answer a question about one of the caller's documents.

        Raises:
            NotFoundError: No such document for this caller (→ 404)
            LLMRateLimitError / LLMServiceError: From the explanation service
        """
        document = await self.find_document(db, document_id, identity.id)
        if document is None:
            raise NotFoundError(resource="document", resource_id=str(document_id))

        explanation = await gemini_service.explain(document.text or "", query)
        return ExplainResponse(explanation=explanation)


# ── Singleton Instance ────────────────────────────────────────────────────
document_service = DocumentService()
