"""
TextLens Backend — OCR Service (Tesseract)
============================================

What:  Extracts plain text from a stored JPEG/PNG image with Tesseract.
Why:   The text is what gets persisted with the Document and later sent to
       the language model, so recognition must either fully succeed or fail.
How:   Each call creates its own TesseractEngine handle, initializes it for
       the configured language, recognizes, and terminates it in a finally
       block. Recognition runs in Starlette's threadpool so the event loop
       keeps serving other requests, and a semaphore bounds how many
       Tesseract processes run at once.
Who:   Called by DocumentService during the upload workflow.

Engine Lifecycle (per call):
    initialize()  → binary reachable? language pack installed?
    recognize()   → pytesseract.image_to_string(...)
    terminate()   → handle is unusable afterwards, even on failure

    No handle outlives its call, so two concurrent uploads never share
    engine state.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import List, Optional

import pytesseract
from PIL import Image
from starlette.concurrency import run_in_threadpool

from textlens.config import settings
from textlens.exceptions import OCRProcessingError

logger = logging.getLogger(__name__)


class TesseractEngine:
    """
    A single-use OCR engine handle.

    Args:
        language: Tesseract language string ("por", "eng", "por+eng")
        oem: OCR engine mode (1 = LSTM only)
        psm: Page segmentation mode (3 = fully automatic)
        timeout: Seconds before the Tesseract process is killed (0 = none)
    """

    def __init__(self, language: str, oem: int, psm: int, timeout: int = 0):
        self.language = language
        self.config = f"--oem {oem} --psm {psm}"
        self.timeout = timeout
        self._ready = False

    @property
    def languages(self) -> List[str]:
        return [lang for lang in self.language.split("+") if lang]

    def initialize(self) -> None:
        """
        Check that Tesseract runs and that every requested language is installed.

        Raises:
            OCRProcessingError: Binary missing or language pack not installed.
        """
        try:
            version = pytesseract.get_tesseract_version()
            installed = set(pytesseract.get_languages(config=""))
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
            raise OCRProcessingError(
                message="OCR engine is not available.",
                context={"stage": "initialize", "error": str(e)},
            )

        missing = [lang for lang in self.languages if lang not in installed]
        if not self.languages or missing:
            raise OCRProcessingError(
                message="OCR engine is not configured for the requested language.",
                context={"stage": "initialize", "missing_languages": missing},
            )

        logger.debug("Tesseract %s initialized for %s", version, self.language)
        self._ready = True

    def recognize(self, image_path: str) -> str:
        """
        Run recognition on one image file.

        Returns the recognized text with surrounding whitespace (and the
        trailing form feed Tesseract appends) removed.
        """
        if not self._ready:
            raise OCRProcessingError(
                message="OCR engine used before initialization.",
                context={"stage": "recognize"},
            )

        with Image.open(image_path) as image:
            text = pytesseract.image_to_string(
                image,
                lang=self.language,
                config=self.config,
                timeout=self.timeout,
            )
        return text.strip()

    def terminate(self) -> None:
        self._ready = False


class OCRService:
    """
    Async front door to Tesseract.

    Concurrency:
        Each Tesseract process saturates a CPU core, so at most
        `max_concurrency` recognitions run at once; further uploads wait
        on the semaphore instead of oversubscribing the host.
    """

    def __init__(self, language: Optional[str] = None, max_concurrency: Optional[int] = None):
        self.language = language or settings.ocr_language
        self.max_concurrency = max_concurrency or settings.ocr_max_concurrency
        self._semaphore = asyncio.Semaphore(self.max_concurrency)

        if settings.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = settings.tesseract_cmd

        logger.info(
            "OCRService initialized with language=%s, max_concurrency=%d",
            self.language,
            self.max_concurrency,
        )

    def _new_engine(self) -> TesseractEngine:
        return TesseractEngine(
            language=self.language,
            oem=settings.ocr_oem,
            psm=settings.ocr_psm,
            timeout=settings.ocr_timeout_seconds,
        )

    def _run_engine(self, image_path: str) -> str:
        """Blocking: one engine handle, created and torn down around one recognition."""
        engine = self._new_engine()
        try:
            engine.initialize()
            return engine.recognize(image_path)
        finally:
            engine.terminate()

    async def extract_text(self, image_path: str) -> str:
        """
        Extract text from an image on disk.

        Args:
            image_path: Absolute path of a stored JPEG or PNG.

        Returns:
            The recognized text (may be empty if the image has no text).

        Raises:
            OCRProcessingError: Any initialization or recognition failure.
                Nothing is retried.
        """
        request_id = uuid.uuid4().hex[:8]
        start_time = time.perf_counter()
        logger.info("[%s] Starting OCR for image: %s", request_id, Path(image_path).name)

        try:
            async with self._semaphore:
                text = await run_in_threadpool(self._run_engine, image_path)
        except OCRProcessingError as e:
            logger.error("[%s] OCR failed: %s | Context: %s", request_id, e.message, e.context)
            raise
        except Exception as e:
            logger.error(
                "[%s] OCR recognition error: %s",
                request_id,
                str(e),
                exc_info=True,
            )
            raise OCRProcessingError(
                message="Could not extract text from the document.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "[%s] OCR completed in %.0fms, extracted %d chars",
            request_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """True if the Tesseract binary answers `--version`."""
        try:
            await run_in_threadpool(pytesseract.get_tesseract_version)
            return True
        except Exception as e:
            logger.warning("Tesseract health check failed: %s", str(e))
            return False


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds configuration and the concurrency semaphore only; no engine state.
ocr_service = OCRService()
