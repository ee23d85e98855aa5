"""
Recovery of malformed LLM JSON output.

Long reference lists regularly hit the model's output limit and come back
truncated mid-array. Parsing walks a fixed recovery ladder before giving up.
"""

import json
import logging
import re
from typing import Any

from .exceptions import AIServiceError

logger = logging.getLogger(__name__)

# Appended to output that was cut off inside the "references" array
TRUNCATION_SUFFIX = "]}"

_ARRAY_LITERAL = re.compile(r"\[[\s\S]*\]")


def parse_model_json(content: str) -> Any:
    """
    Parse an LLM response as JSON, recovering from truncation where possible.

    Recovery ladder:
        1. Parse the content as-is.
        2. Append a closing bracket/brace sequence and parse again.
        3. Extract the first bracketed array literal and parse that,
           wrapping it as ``{"references": [...]}``.

    Args:
        content: Raw message content returned by the model.

    Returns:
        The decoded JSON value.

    Raises:
        AIServiceError: If every recovery step fails.
    """
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        original_error = e
        logger.error("Failed to parse LLM response as JSON: %s", content[:500])

    logger.warning("Attempting to fix truncated JSON...")
    try:
        parsed = json.loads(content.strip() + TRUNCATION_SUFFIX)
        logger.warning("Successfully recovered from truncated response")
        return parsed
    except json.JSONDecodeError:
        pass

    match = _ARRAY_LITERAL.search(content)
    if match:
        try:
            references = json.loads(match.group(0))
            logger.warning("Extracted partial array from response")
            return {"references": references}
        except json.JSONDecodeError:
            pass

    raise AIServiceError(
        f"Invalid JSON response from LLM (tried recovery): {original_error}"
    ) from original_error
