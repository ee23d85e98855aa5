"""
Tier 2: Perplexity AI search.

A single chat completion asking for "Institution (CC)". The answer is only
accepted when it ends up in that shape.
"""

import logging
import re

import httpx

from ...models import AffiliationSource, Confidence

logger = logging.getLogger(__name__)

PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"

PERPLEXITY_SYSTEM_PROMPT = (
    'You are a bibliographic assistant. Respond ONLY with: "Institution Name '
    '(Country Code)" format. No explanations, citations, or extra text.'
)

COUNTRY_CODE_PATTERN = re.compile(r"\([A-Z]{2}\)")
CITATION_MARKER_PATTERN = re.compile(r"\[\d+\]")
SENTENCE_PATTERNS = (
    re.compile(r"\bwas\s+([^.]+\([A-Z]{2}\))", re.IGNORECASE),
    re.compile(r"\bis\s+([^.]+\([A-Z]{2}\))", re.IGNORECASE),
)
ANSWER_PREFIX_PATTERN = re.compile(
    r"^(The affiliation is|Answer:|Institution:)", re.IGNORECASE
)


def build_affiliation_query(author_name: str, title: str, year: str) -> str:
    return (
        f'Find the institutional affiliation of "{author_name}" in {year} '
        f'when publishing "{title}" in {year}.\n'
        'Answer format: "Institution Name (Country)" only. Example: "MIT (US)" '
        'or "Vienna University of Technology (AT)".\n'
        'If not found: "Unknown"'
    )


def clean_affiliation_answer(answer: str | None) -> str | None:
    """
    Reduce a model answer to "Institution (CC)", or None if it is a miss.

    Handles citation markers ("MIT (US) [1][2]"), full sentences ("... was
    Google Brain (US).") and common prefixes ("Answer: ...").
    """
    answer = (answer or "").strip()
    if not answer or answer == "Unknown" or "not found" in answer or "cannot" in answer:
        return None

    answer = CITATION_MARKER_PATTERN.sub("", answer).strip()

    for pattern in SENTENCE_PATTERNS:
        match = pattern.search(answer)
        if match:
            answer = match.group(1).strip()
            break

    affiliation = ANSWER_PREFIX_PATTERN.sub("", answer)
    affiliation = re.sub(r"\.$", "", affiliation).strip()

    if 5 < len(affiliation) < 200 and COUNTRY_CODE_PATTERN.search(affiliation):
        return affiliation
    return None


class PerplexityTier:
    """Conversational AI search, used only when an API key is configured."""

    name = "Perplexity AI"
    source = AffiliationSource.PERPLEXITY
    confidence = Confidence.HIGH

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str = "sonar",
        url: str = PERPLEXITY_URL,
    ):
        self._client = client
        self._api_key = api_key
        self._model = model
        self._url = url

    async def lookup(self, author_name: str, title: str, year: str) -> str | None:
        try:
            response = await self._client.post(
                self._url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "model": self._model,
                    "messages": [
                        {"role": "system", "content": PERPLEXITY_SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": build_affiliation_query(author_name, title, year),
                        },
                    ],
                    "temperature": 0.0,
                    "max_tokens": 50,
                },
            )
            if response.status_code != 200:
                logger.warning(
                    "[Perplexity] API error: %d - %s",
                    response.status_code,
                    response.text[:200],
                )
                return None

            choices = response.json().get("choices") or []
            if not choices:
                return None
            answer = (choices[0].get("message") or {}).get("content")
            return clean_affiliation_answer(answer)
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("[Perplexity] Error: %s", e)
            return None
