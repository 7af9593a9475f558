"""
TextLens Backend — Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for every failure the API reports.
Why:   Typed failures carry a user-safe message; the global handler in
       main.py translates each type to one HTTP status via a single table.
How:   Each exception class carries a message and optional context dict.
       The message is returned to the client, the context is only logged.
Who:   Raised by services and dependencies; caught by the global handler.

Exception Hierarchy:
    TextLensError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── FileStorageError         → 500 Internal Server Error
    ├── OCRProcessingError       → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    └── LLMServiceError          → 500 Internal Server Error
        ├── LLMResponseFormatError → 500 (provider answered with nothing usable)
        └── LLMRateLimitError      → 429 Too Many Requests (retry later)
"""

from typing import Any, Dict, Optional


class TextLensError(Exception):
    """
    Base exception for all TextLens application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(TextLensError):
    """
    Raised when client input fails validation.

    When:    File type mismatch, size exceeded, empty upload, page out of range.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "File type 'application/pdf' is not supported. Allowed: JPEG, PNG",
            "details": {"field": "file"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(TextLensError):
    """
    Raised when the bearer token is missing, malformed, badly signed or expired.

    HTTP:    401 Unauthorized (with WWW-Authenticate: Bearer)

    The message never says which check failed; the reason goes to context.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(TextLensError):
    """
    Raised when a requested resource does not exist for the caller.

    HTTP:    404 Not Found

    A document owned by someone else raises exactly the same error as a
    document that does not exist at all, so callers cannot probe for ids.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(TextLensError):
    """
    Raised when file system operations fail.

    When:    Disk full, permission denied, directory not writable, I/O error.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class OCRProcessingError(TextLensError):
    """
    Raised when the OCR engine cannot be initialized or recognition fails.

    HTTP:    500 Internal Server Error

    No partial text is ever attached; the upload request fails as a whole.
    """

    def __init__(
        self,
        message: str = "Could not extract text from the document",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(TextLensError):
    """
    Raised when database operations fail unexpectedly.

    When:    Connection lost mid-query, constraint violation, deadlock, etc.
    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. SQL, constraint
        names and driver messages are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(TextLensError):
    """
    Raised when the language model call fails.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "The explanation service failed. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMResponseFormatError(LLMServiceError):
    """Raised when the provider answers but the response carries no usable text."""

    def __init__(
        self,
        message: str = "The explanation service returned an unexpected response.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMRateLimitError(LLMServiceError):
    """
    Raised when the provider rejects the call for rate or quota limits.

    HTTP:    429 Too Many Requests

    Unlike the generic LLMServiceError this tells the caller that the same
    request may succeed later.
    """

    def __init__(
        self,
        message: str = (
            "The explanation service quota was exceeded. Please try again later."
        ),
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
