"""
TextLens Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and container probes.
How:   Runs SELECT 1 against the database and asks Tesseract for its
       version and installed languages.

Status levels:
    - healthy:   Database and Tesseract both reachable
    - degraded:  Database up, Tesseract missing or lacking the language
    - unhealthy: Database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from textlens import __version__
from textlens.database import engine
from textlens.schemas.common import HealthResponse
from textlens.services.ocr_service import ocr_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    db_status = "connected"
    ocr_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if not await ocr_service.health_check():
        ocr_status = "unavailable"
        if overall != "unhealthy":
            overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        ocr=ocr_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
