"""
TextLens Backend — OCR Route Handlers
=======================================

What:  POST /ocr/upload, GET /ocr/list and POST /ocr/explain.
How:   Every handler resolves the caller first (get_current_user), then
       delegates to DocumentService with the request's session. Errors are
       raised as TextLensError subclasses and formatted by the handlers
       registered in main.py.
Who:   Called by the frontend upload, history and explain views.

Auth:
    All three endpoints require `Authorization: Bearer <token>`.
    A missing or invalid token is rejected before the body is touched.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from textlens.config import settings
from textlens.database import get_db_session
from textlens.dependencies import get_current_user
from textlens.schemas.auth import CallerIdentity
from textlens.schemas.common import ErrorResponse
from textlens.schemas.document import (
    DocumentListResponse,
    DocumentResponse,
    ExplainRequest,
    ExplainResponse,
)
from textlens.services.document_service import document_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ocr", tags=["OCR"])

_ERROR_RESPONSES = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


@router.post(
    "/upload",
    status_code=201,
    response_model=DocumentResponse,
    responses={
        201: {"description": "Document stored and text extracted", "model": DocumentResponse},
        **_ERROR_RESPONSES,
    },
    summary="Upload an image and extract its text",
    description=(
        "Upload a JPEG or PNG image (multipart field `file`, optional `name`). "
        "The image is stored, its text is extracted with Tesseract, and the "
        "resulting document is returned."
    ),
)
async def upload_document(
    file: UploadFile = File(..., description="JPEG or PNG image"),
    name: Optional[str] = Form(default=None, max_length=255, description="Display name"),
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DocumentResponse:
    """
    Processing Steps:
        1. Read at most MAX_FILE_SIZE + 1 bytes (enough to detect oversize)
        2. DocumentService.upload_document: validate → store → OCR → persist
        3. Close the upload in every case
    """
    try:
        content = await file.read(settings.max_file_size + 1)

        logger.info(
            "Received upload: filename=%s, content_type=%s, size=%d bytes, user=%s",
            file.filename or "unknown",
            file.content_type,
            len(content),
            caller.id,
        )

        return await document_service.upload_document(
            db=db,
            identity=caller,
            filename=file.filename or "upload",
            content_type=file.content_type,
            content=content,
            name=name,
        )
    finally:
        await file.close()


@router.get(
    "/list",
    response_model=DocumentListResponse,
    responses={
        200: {"description": "One page of the caller's documents", "model": DocumentListResponse},
        **_ERROR_RESPONSES,
    },
    summary="List the caller's documents",
    description=(
        "Returns the caller's documents newest first, in pages. `search` filters "
        "by a case-insensitive substring of the document name."
    ),
)
async def list_documents(
    page: int = Query(default=1, ge=1, description="1-based page number"),
    search: Optional[str] = Query(default=None, max_length=255, description="Name filter"),
    page_size: int = Query(
        default=settings.list_page_size,
        alias="pageSize",
        ge=1,
        le=settings.list_max_page_size,
        description="Documents per page",
    ),
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DocumentListResponse:
    return await document_service.list_documents(
        db=db,
        owner_id=caller.id,
        page=page,
        page_size=page_size,
        search=search,
    )


@router.post(
    "/explain",
    response_model=ExplainResponse,
    responses={
        200: {"description": "Generated explanation", "model": ExplainResponse},
        404: {"description": "No such document for this caller", "model": ErrorResponse},
        429: {"description": "LLM provider rate limit", "model": ErrorResponse},
        **_ERROR_RESPONSES,
    },
    summary="Ask a question about a stored document",
)
async def explain_document(
    body: ExplainRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ExplainResponse:
    """
    Documents owned by someone else answer exactly like missing ones (404),
    and the LLM is only called once ownership is confirmed.
    """
    return await document_service.explain_document(
        db=db,
        identity=caller,
        document_id=body.id,
        query=body.query,
    )
