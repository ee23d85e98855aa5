"""
AI service package for bibliographic reference extraction.

This package provides modular AI functionality split into:
- extraction: LLM calls, prompt and chunked processing
- chunking: splitting long text at paragraph boundaries
- repair: recovery of truncated or malformed JSON output
- validation: normalization of raw model output into strict records

The AIService class holds the OpenAI client and delegates to these modules.
"""

import logging

from ...config import get_settings
from ...models import ExtractedReference
from .chunking import split_text_into_chunks
from .exceptions import AIServiceError
from .extraction import extract_references as _extract_references
from .repair import parse_model_json
from .validation import (
    REFERENCE_FIELD_ALIASES,
    coerce_reference_list,
    dedupe_by_citation_key,
    normalize_references,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "REFERENCE_FIELD_ALIASES",
    "coerce_reference_list",
    "dedupe_by_citation_key",
    "extract_references",
    "get_ai_service",
    "normalize_references",
    "parse_model_json",
    "split_text_into_chunks",
]


# =============================================================================
# AIService Class
# =============================================================================


class AIService:
    """
    Service for LLM-backed reference extraction.

    Uses an OpenAI chat model in JSON mode. Without an API key the service
    runs in mock mode and extracts nothing, which downstream surfaces as an
    empty extraction.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        chunk_size: int | None = None,
        boundary_window: int | None = None,
        use_mock: bool = False,
        client=None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. If None, reads from config/environment.
            model: OpenAI model to use.
            max_tokens: Output token budget per request.
            chunk_size: Character budget per request before chunking.
            boundary_window: Paragraph-break search window around each cut.
            use_mock: If True, return no references instead of calling OpenAI.
            client: Pre-built AsyncOpenAI-compatible client.
        """
        settings = get_settings()
        if api_key is None:
            api_key = settings.openai_api_key

        self.api_key = api_key
        self.model = model or settings.openai_model
        self.max_tokens = max_tokens or settings.openai_max_tokens
        self.chunk_size = chunk_size or settings.chunk_size_chars
        self.boundary_window = (
            boundary_window if boundary_window is not None else settings.chunk_boundary_window
        )
        self._client = client
        self.use_mock = use_mock or (client is None and not self.api_key)

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Set OPENAI_API_KEY in .env for real extraction."
            )

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise AIServiceError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(api_key=self.api_key)
            except ImportError as e:
                raise AIServiceError(
                    "openai library not installed. Run: pip install openai"
                ) from e
        return self._client

    async def extract_references(self, text: str) -> list[ExtractedReference]:
        """
        Extract all references from document text.

        Delegates to the extraction module.

        Args:
            text: Full document text.

        Returns:
            Normalized references (empty in mock mode).
        """
        if self.use_mock:
            logger.error("OpenAI API key not configured - LLM extraction is disabled")
            return []

        return await _extract_references(
            text,
            client=self.client,
            model=self.model,
            max_tokens=self.max_tokens,
            chunk_size=self.chunk_size,
            boundary_window=self.boundary_window,
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service


# Re-export module function for direct use without AIService
extract_references = _extract_references
