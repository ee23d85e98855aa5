"""
Tier 3: OpenAlex works index (fallback).
"""

import logging
from typing import Any

import httpx

from ...models import AffiliationSource, Confidence
from .matching import authors_match, clean_query_text, parse_year

logger = logging.getLogger(__name__)

OPENALEX_BASE = "https://api.openalex.org"


def affiliation_from_work(work: dict[str, Any], author_name: str) -> str | None:
    """
    First institution of the authorship matching ``author_name``.

    Returns None when no author of the work matches; an institution is never
    taken from a differently-authored work.
    """
    for authorship in work.get("authorships") or []:
        display_name = (authorship.get("author") or {}).get("display_name") or ""
        if not authors_match(author_name, display_name):
            continue
        for institution in authorship.get("institutions") or []:
            name = institution.get("display_name")
            if not name:
                continue
            country = institution.get("country_code")
            return f"{name} ({country})" if country else name

    logger.warning(
        "[OpenAlex] Author name mismatch: searched for %r but work has different authors",
        author_name,
    )
    return None


class OpenAlexTier:
    """Title search, top result only."""

    name = "OpenAlex"
    source = AffiliationSource.OPENALEX
    confidence = Confidence.MEDIUM

    def __init__(self, client: httpx.AsyncClient, base_url: str = OPENALEX_BASE):
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def lookup(self, author_name: str, title: str, year: str) -> str | None:
        params: dict[str, Any] = {"search": clean_query_text(title), "per-page": 1}
        publication_year = parse_year(year)
        if publication_year:
            params["filter"] = f"publication_year:{publication_year}"

        try:
            response = await self._client.get(f"{self._base_url}/works", params=params)
            if response.status_code != 200:
                logger.warning("[OpenAlex] API error: %d", response.status_code)
                return None
            results = response.json().get("results") or []
            if not results:
                return None
            return affiliation_from_work(results[0], author_name)
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("[OpenAlex] Error: %s", e)
            return None
