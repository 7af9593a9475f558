"""
TextLens Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers
       and returns the app; uvicorn serves `textlens.main:app`.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐ ┌──────┐ ┌──────┐ │
    │  │ Req ID   │→│  Logging        │→│ GZip │→│ CORS │ │
    │  └──────────┘ └─────────────────┘ └──────┘ └──────┘ │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │ /ocr/upload  │ │ /ocr/list│ │ /ocr/explain    │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │  ┌──────────────┐                                   │
    │  │ GET /health  │                                   │
    │  └──────────────┘                                   │
    │                                                     │
    │  Exception Handling: ERROR_RESPONSES table          │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → storage directory
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Dict, Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from textlens import __version__
from textlens.config import settings
from textlens.database import dispose_engine
from textlens.exceptions import (
    AuthenticationError,
    DatabaseError,
    FileStorageError,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMServiceError,
    NotFoundError,
    OCRProcessingError,
    TextLensError,
    ValidationError,
)
from textlens.middleware.logging import RequestLoggingMiddleware
from textlens.middleware.request_id import RequestIDMiddleware, request_id_var
from textlens.routes import health, ocr

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once for the whole process.

    Format: 2024-01-15T12:00:00 [INFO] textlens.access: POST /ocr/upload 201 ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party chatter
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("TextLens Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health still reports, and /ocr answers 401/500.
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())
    logger.info("OCR language: %s", settings.ocr_language)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("TextLens Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# Exception type → (HTTP status, error code). Resolved along the MRO, so a
# subclass listed here wins over its parent.
ERROR_RESPONSES: Dict[Type[TextLensError], Tuple[int, str]] = {
    ValidationError: (400, "validation_error"),
    AuthenticationError: (401, "unauthorized"),
    NotFoundError: (404, "not_found"),
    LLMRateLimitError: (429, "llm_rate_limited"),
    OCRProcessingError: (500, "ocr_error"),
    LLMResponseFormatError: (500, "llm_response_error"),
    LLMServiceError: (500, "llm_service_error"),
    FileStorageError: (500, "server_error"),
    DatabaseError: (500, "server_error"),
}

_DEFAULT_ERROR = (500, "internal_server_error")
_GENERIC_SERVER_MESSAGE = "An internal error occurred. Please try again later."


def resolve_error(exc: Exception) -> Tuple[int, str]:
    """Status and error code for an exception, via ERROR_RESPONSES."""
    for cls in type(exc).__mro__:
        if cls in ERROR_RESPONSES:
            return ERROR_RESPONSES[cls]
    return _DEFAULT_ERROR


def _error_body(
    error: str,
    message: str,
    request_id: str,
    details: Optional[object] = None,
) -> dict:
    body = {"error": error, "message": message, "request_id": request_id}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the global handlers.

        TextLensError (any subclass) → ERROR_RESPONSES
        RequestValidationError       → 400 validation_error (FastAPI's own checks)
        Exception (fallback)         → 500 internal_server_error

    Only validation errors carry `details`. Context dicts of other errors
    are logged server-side and never returned.
    """

    @app.exception_handler(TextLensError)
    async def handle_textlens_error(request: Request, exc: TextLensError):
        rid = request_id_var.get("")
        status_code, error_code = resolve_error(exc)

        if status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s",
                rid, type(exc).__name__, exc.message, exc.context,
            )
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)

        message = exc.message
        if isinstance(exc, (DatabaseError, FileStorageError)):
            message = _GENERIC_SERVER_MESSAGE

        details = exc.context if isinstance(exc, ValidationError) else None
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None

        return JSONResponse(
            status_code=status_code,
            content=_error_body(error_code, message, rid, details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        errors = [
            {
                "loc": [str(part) for part in err.get("loc", ())],
                "msg": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed: %s", rid, errors)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "validation_error",
                "The request is invalid. Check the details and try again.",
                rid,
                errors,
            ),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
                rid,
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="TextLens API",
        description=(
            "Upload images of documents, extract their text with Tesseract OCR, "
            "and ask Google Gemini questions about it."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware runs in reverse order of addition:
    # RequestID → Logging → GZip → CORS → route
    origins = settings.cors_origins_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers refuse credentials with a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(ocr.router)
    app.include_router(health.router)

    return app


app = create_app()
