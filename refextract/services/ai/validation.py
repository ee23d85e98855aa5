"""
Normalization of raw LLM reference objects into strict records.

Handles:
- Response shape tolerance (bare array, ``references`` or ``items`` wrapper)
- Key-name aliases (camelCase, snake_case and short forms)
- Post-filtering of unusable entries
- Cross-chunk deduplication by citation key
"""

import logging
from typing import Any

from ...models import Confidence, ExtractedReference
from .exceptions import AIServiceError

logger = logging.getLogger(__name__)


# Canonical field -> accepted keys, in priority order
REFERENCE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "citation_key": ("citationKey", "citation_key", "key"),
    "first_author": ("firstAuthor", "first_author"),
    "other_authors": ("otherAuthors", "other_authors"),
    "title": ("title",),
    "year": ("year",),
    "publisher_journal": ("publisherJournal", "publisher_journal", "publisher", "journal"),
    "volume_issue": ("volumeIssue", "volume_issue", "volume"),
    "pages": ("pages",),
    "extra_notes": ("extraNotes", "extra_notes", "notes"),
    "isbn": ("isbn",),
    "reference_raw": ("referenceRaw", "reference_raw", "raw"),
}

# Keys the model may wrap the reference array in
ARRAY_WRAPPER_KEYS = ("references", "items")


def coerce_reference_list(parsed: Any) -> list[Any]:
    """
    Pull the list of reference objects out of a decoded response.

    Raises:
        AIServiceError: If no array of references is present.
    """
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in ARRAY_WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                return parsed[key]
    logger.error("LLM response is not an array: %s", str(parsed)[:500])
    raise AIServiceError("LLM did not return an array of references")


def _as_text(value: Any) -> str:
    """Flatten a JSON value into the string form used by every record field."""
    if value is None:
        return ""
    if isinstance(value, list):
        # Authors occasionally come back as arrays despite the prompt
        return "; ".join(_as_text(item) for item in value if item not in (None, ""))
    return str(value).strip()


def normalize_reference_fields(raw: dict[str, Any], index: int) -> dict[str, str]:
    """
    Map one raw reference object onto the canonical field set.

    The first non-empty alias wins; missing fields become empty strings and a
    missing citation key falls back to ``Ref-<n>`` (1-based).
    """
    fields: dict[str, str] = {}
    for field_name, aliases in REFERENCE_FIELD_ALIASES.items():
        value = ""
        for alias in aliases:
            value = _as_text(raw.get(alias))
            if value:
                break
        fields[field_name] = value

    if not fields["citation_key"]:
        fields["citation_key"] = f"Ref-{index + 1}"
    return fields


def is_usable_reference(fields: dict[str, str]) -> bool:
    """
    Decide whether normalized fields describe a real reference.

    Drops entries without a citation key, with "unknown" in the key, or with
    neither a title nor a first author.
    """
    citation_key = fields.get("citation_key", "")
    if not citation_key or "unknown" in citation_key.lower():
        return False
    return bool(fields.get("title") or fields.get("first_author"))


def normalize_references(items: list[Any]) -> list[ExtractedReference]:
    """
    Turn raw model items into validated records.

    Confidence is always recorded as high and the extraction method as
    ``llm``, whatever the model self-reported.
    """
    references: list[ExtractedReference] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Skipping non-object reference at index %d", index)
            continue
        fields = normalize_reference_fields(item, index)
        if not is_usable_reference(fields):
            continue
        references.append(
            ExtractedReference(
                **fields,
                confidence=Confidence.HIGH,
                extraction_method="llm",
            )
        )

    logger.info("Filtered to %d valid references", len(references))
    return references


def dedupe_by_citation_key(
    references: list[ExtractedReference],
) -> list[ExtractedReference]:
    """Drop repeated citation keys (case-insensitive); first occurrence wins."""
    seen: set[str] = set()
    unique: list[ExtractedReference] = []
    for reference in references:
        key = reference.citation_key.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(reference)
    return unique
