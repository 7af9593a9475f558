"""
TextLens Backend — Document Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract for the /ocr endpoints.
Why:   Strict input validation, automatic serialization, and OpenAPI docs.
How:   Python attributes stay snake_case; the wire format is camelCase
       (fileUrl, userId, createdAt, currentPage, totalPages) through an
       alias generator, which FastAPI applies when serializing responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for schemas exposed on the wire with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class DocumentResponse(CamelModel):
    """
    What:  Full representation of an uploaded document.
    Who:   Returned by POST /ocr/upload and as items of GET /ocr/list.
    """
    id: int = Field(description="Numeric document id, used by /ocr/explain")
    name: Optional[str] = Field(default=None, description="Display name given at upload")
    file_url: str = Field(description="Storage path of the uploaded image")
    text: Optional[str] = Field(default=None, description="Text extracted by OCR")
    user_id: str = Field(description="Owner's identity subject id")
    created_at: datetime = Field(description="When the document was created (UTC)")


class DocumentListResponse(CamelModel):
    """
    What:  One page of the caller's documents.
    Who:   Returned by GET /ocr/list.

    Pagination strategy:
        Offset pages, newest first. total_pages = ceil(matching / page_size);
        asking for a page past the end returns an empty documents list.
    """
    documents: List[DocumentResponse] = Field(description="Documents on this page")
    current_page: int = Field(description="The page that was returned (1-based)")
    total_pages: int = Field(description="Number of pages for the current filter")


class ExplainResponse(CamelModel):
    """Returned by POST /ocr/explain."""
    explanation: str = Field(description="Answer generated from the document text")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ExplainRequest(BaseModel):
    """
    What:  Body of POST /ocr/explain.

    `id` accepts JSON numbers and numeric strings ("12"); anything else is
    rejected before any lookup happens.
    """
    id: int = Field(description="Id of one of the caller's documents")
    query: str = Field(min_length=1, max_length=4000, description="Question about the text")

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        """Rejects whitespace-only questions."""
        if not v.strip():
            raise ValueError("query must not be blank")
        return v
