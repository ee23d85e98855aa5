"""
Reference extraction from document text.

Uses an OpenAI chat model in JSON mode, with chunked processing for long
documents and recovery from truncated output.
"""

import logging
from typing import Any

from ...models import ExtractedReference
from .chunking import split_text_into_chunks
from .exceptions import AIServiceError
from .repair import parse_model_json
from .validation import coerce_reference_list, dedupe_by_citation_key, normalize_references

logger = logging.getLogger(__name__)


# =============================================================================
# Extraction System Prompt
# =============================================================================

REFERENCE_EXTRACTION_SYSTEM_PROMPT = """You are an expert bibliographic reference parser. Extract COMPLETE information from academic references.
You will be given a text with references. Extract the information from the text and return it in the format below.

OUTPUT FORMAT (JSON):
{
  "references": [
    {
      "citationKey": "Hill '79",
      "firstAuthor": "Banu Musa brothers",
      "otherAuthors": "",
      "title": "The book of ingenious devices (Kitab al-hiyal)",
      "year": "1979",
      "publisherJournal": "Springer",
      "volumeIssue": "",
      "pages": "p. 44",
      "extraNotes": "Translated by D. R. Hill; (9th century origin)",
      "isbn": "90-277-0833-9",
      "referenceRaw": "[Hill '79] Banu Musa brothers (1979). The book of ingenious devices...",
      "confidence": "high"
    }
  ]
}

## Critical Rules:

1. **Citation Key Format**: Extract EXACTLY as shown in the PDF, without brackets.
   "[Hill '79]" in the PDF becomes "Hill '79" in JSON.
2. **Authors as STRINGS**:
   - firstAuthor: STRING (not array)
   - otherAuthors: STRING, semicolon-separated ("Author1; Author2; Author3"), "" if only one author
3. **Empty values**: Use empty string "" (not "-" or null).
4. **referenceRaw**: The reference text exactly as it appears.
5. Identify and extract ONLY actual bibliographic references.
6. IGNORE page headers, footers, chapter titles ("Chapter 2", "Skip lists:", ...).
7. Skip entries with no meaningful data (no "Unknown" entries).
8. **Confidence**: Your self-assessment
   - "high": All key fields extracted clearly
   - "medium": Missing some fields
   - "low": Ambiguous or poorly formatted

Output ONLY valid JSON with a "references" array, no other text."""


def _build_user_prompt(text: str) -> str:
    return f"Extract all bibliographic references from the following text:\n\n{text}"


# =============================================================================
# Main Extraction Functions
# =============================================================================


async def _extract_from_text(
    text: str,
    client: Any,  # AsyncOpenAI client
    model: str,
    max_tokens: int,
) -> list[ExtractedReference]:
    """Extract references from a single piece of text (one LLM request)."""
    logger.info("Extracting all references from text (%d chars)...", len(text))

    try:
        response = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": REFERENCE_EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": _build_user_prompt(text)},
            ],
            temperature=0,
            response_format={"type": "json_object"},
            max_tokens=max_tokens,
        )
    except Exception as e:
        logger.exception("LLM reference extraction request failed")
        raise AIServiceError(f"LLM reference extraction failed: {e}") from e

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise AIServiceError("No response from LLM")

    parsed = parse_model_json(content)
    items = coerce_reference_list(parsed)
    logger.info("LLM extracted %d references", len(items))

    return normalize_references(items)


async def extract_references(
    text: str,
    client: Any,  # AsyncOpenAI client
    model: str = "gpt-4o-mini",
    max_tokens: int = 16000,
    chunk_size: int = 15000,
    boundary_window: int = 500,
) -> list[ExtractedReference]:
    """
    Extract every bibliographic reference from document text.

    Text within ``chunk_size`` characters is sent in one request. Longer text
    is split at paragraph boundaries, each chunk is extracted in turn and the
    combined result is deduplicated by citation key (case-insensitive, first
    occurrence wins).

    Args:
        text: Full document text.
        client: AsyncOpenAI client instance.
        model: Model name to use.
        max_tokens: Output token budget per request.
        chunk_size: Character budget per request.
        boundary_window: Paragraph-break search window around each cut.

    Returns:
        Normalized, filtered references.

    Raises:
        AIServiceError: If a request fails or its output cannot be recovered.
    """
    if len(text) <= chunk_size:
        return await _extract_from_text(text, client, model, max_tokens)

    logger.warning(
        "Text is long (%d chars), processing in chunks to avoid truncation...",
        len(text),
    )
    chunks = split_text_into_chunks(text, chunk_size, boundary_window)
    logger.info("Processing %d chunks...", len(chunks))

    all_references: list[ExtractedReference] = []
    for i, chunk in enumerate(chunks, start=1):
        logger.info("Processing chunk %d/%d (%d chars)...", i, len(chunks), len(chunk))
        all_references.extend(
            await _extract_from_text(chunk, client, model, max_tokens)
        )

    unique = dedupe_by_citation_key(all_references)
    logger.info(
        "Extracted %d total, %d unique after deduplication",
        len(all_references),
        len(unique),
    )
    return unique
