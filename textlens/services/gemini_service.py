"""
TextLens Backend — Google Gemini Explanation Service
======================================================

What:  Concrete LLM service answering questions about extracted text with Gemini.
Why:   The explain endpoint turns raw OCR output into an answer to the
       caller's question.
How:   A fixed system instruction plus one user message that embeds the
       document text and the question verbatim, sent with bounded output
       length and a fixed temperature.
Who:   Instantiated once at import; called by DocumentService.explain_document.

Failure Translation:
    google.api_core TooManyRequests / ResourceExhausted → LLMRateLimitError (429)
    response without text (blocked, empty candidates)  → LLMResponseFormatError
    anything else                                      → LLMServiceError

    Every call is a single round trip. There is no retry and no cache; the
    client decides whether to ask again.
"""

import logging
import time
import uuid

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from textlens.config import settings
from textlens.exceptions import (
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMServiceError,
)
from textlens.services.llm_base import LLMService

logger = logging.getLogger(__name__)


class GeminiService(LLMService):
    """Google Gemini implementation of the explanation contract."""

    SYSTEM_INSTRUCTION = (
        "You are an assistant experienced in explaining text extracted by OCR. "
        "The text may contain recognition errors; interpret it charitably, say so "
        "when something is unreadable, and answer in the language of the question."
    )

    PROMPT_TEMPLATE = 'Extracted text:\n"""{text}"""\n\nExplain the following: {query}'

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=self.SYSTEM_INSTRUCTION,
        )
        self.generation_config = genai.GenerationConfig(
            max_output_tokens=settings.llm_max_output_tokens,
            temperature=settings.llm_temperature,
        )

        logger.info(
            "GeminiService initialized with model=%s, max_output_tokens=%d, temperature=%.2f",
            settings.gemini_model,
            settings.llm_max_output_tokens,
            settings.llm_temperature,
        )

    def build_prompt(self, text: str, query: str) -> str:
        """The user message: document text and question, both verbatim."""
        return self.PROMPT_TEMPLATE.format(text=text, query=query)

    async def explain(self, text: str, query: str) -> str:
        request_id = uuid.uuid4().hex[:8]
        start_time = time.time()

        logger.info(
            "[%s] Sending explain request (%d chars of text, %d chars of query)",
            request_id,
            len(text),
            len(query),
        )

        try:
            response = await self.model.generate_content_async(
                self.build_prompt(text, query),
                generation_config=self.generation_config,
                request_options={"timeout": settings.llm_timeout_seconds},
            )
        except google_exceptions.TooManyRequests as e:
            # ResourceExhausted (quota) is a subclass of TooManyRequests
            logger.warning("[%s] Gemini rate limit / quota exceeded: %s", request_id, str(e))
            raise LLMRateLimitError(
                context={"request_id": request_id, "error_type": type(e).__name__},
            )
        except Exception as e:
            logger.error(
                "[%s] Gemini call failed after %.0fms: %s",
                request_id,
                (time.time() - start_time) * 1000,
                str(e),
                exc_info=True,
            )
            raise LLMServiceError(
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        answer = self._extract_answer(response, request_id)

        logger.info(
            "[%s] Explain completed in %.0fms, %d chars",
            request_id,
            (time.time() - start_time) * 1000,
            len(answer),
        )
        return answer

    def _extract_answer(self, response, request_id: str) -> str:
        """
        Pull the answer text out of a Gemini response.

        response.text raises ValueError when the candidate has no parts
        (safety block, max tokens before any output, ...).
        """
        try:
            answer = response.text
        except (ValueError, AttributeError, IndexError) as e:
            logger.error("[%s] Unexpected Gemini response: %s", request_id, str(e))
            raise LLMResponseFormatError(
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        if not isinstance(answer, str) or not answer.strip():
            logger.error("[%s] Gemini returned an empty answer", request_id)
            raise LLMResponseFormatError(context={"request_id": request_id})

        return answer.strip()


# ── Singleton Instance ────────────────────────────────────────────────────
gemini_service = GeminiService()
