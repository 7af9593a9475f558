"""
TextLens Backend — Abstract LLM Service Interface
===================================================

What:  Abstract base class defining the contract for document explanation.
Why:   Swapping providers (Gemini → another API) must not touch the
       upload/explain workflow or its error handling.
How:   Concrete implementations inherit from LLMService and implement explain().
Who:   Called by DocumentService.explain_document.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """
    Abstract interface for answering questions about OCR-extracted text.

    Contract:
        - explain() sends exactly one provider request; no retries, no caching
        - Provider errors are translated into the LLMServiceError family:
            LLMRateLimitError       provider throttled or quota exhausted
            LLMResponseFormatError  provider answered without usable text
            LLMServiceError         everything else
    """

    @abstractmethod
    async def explain(self, text: str, query: str) -> str:
        """
        Answer `query` about `text`.

        Args:
            text:  Text previously extracted from one of the caller's documents.
            query: The caller's natural-language question.

        Returns:
            str: The generated answer, stripped of surrounding whitespace.
                 Never empty.

        Raises:
            LLMRateLimitError, LLMResponseFormatError, LLMServiceError
        """
        ...
