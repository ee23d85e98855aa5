"""
Shared exceptions for AI service modules.
"""


class AIServiceError(Exception):
    """Raised when an LLM extraction call fails or its output cannot be recovered."""

    pass
