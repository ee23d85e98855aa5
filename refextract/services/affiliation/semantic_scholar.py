"""
Tier 1: Semantic Scholar academic graph.

Free and structured. The public API allows roughly one request per second,
so each search is preceded by a fixed delay.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from ...models import AffiliationSource, Confidence
from .matching import authors_match, clean_query_text, parse_year

logger = logging.getLogger(__name__)

SEMANTIC_SCHOLAR_BASE = "https://api.semanticscholar.org/graph/v1"


class SemanticScholarTier:
    """Title search, then an author profile lookup for the matched author."""

    name = "Semantic Scholar"
    source = AffiliationSource.SEMANTIC_SCHOLAR
    confidence = Confidence.HIGH

    def __init__(
        self,
        client: httpx.AsyncClient,
        delay_seconds: float = 1.0,
        base_url: str = SEMANTIC_SCHOLAR_BASE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._delay = delay_seconds
        self._base_url = base_url.rstrip("/")
        self._sleep = sleep

    async def lookup(self, author_name: str, title: str, year: str) -> str | None:
        target_year = parse_year(year)
        try:
            await self._sleep(self._delay)
            response = await self._client.get(
                f"{self._base_url}/paper/search",
                params={
                    "query": clean_query_text(title)[:200],
                    "limit": 5,
                    "fields": "title,authors,year",
                },
            )
            if response.status_code != 200:
                logger.warning("[Semantic Scholar] API error: %d", response.status_code)
                return None

            papers = response.json().get("data") or []
            for paper in papers:
                paper_year = paper.get("year")
                if target_year and isinstance(paper_year, int):
                    if abs(target_year - paper_year) > 1:
                        continue

                for author in paper.get("authors") or []:
                    if not authors_match(author_name, author.get("name") or ""):
                        continue
                    affiliation = await self._author_affiliation(author.get("authorId"))
                    if affiliation:
                        return affiliation
            return None
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("[Semantic Scholar] Error: %s", e)
            return None

    async def _author_affiliation(self, author_id: str | None) -> str | None:
        """Most recent listed affiliation of an author profile."""
        if not author_id:
            return None
        response = await self._client.get(
            f"{self._base_url}/author/{author_id}",
            params={"fields": "affiliations,name"},
        )
        if response.status_code != 200:
            return None
        affiliations = response.json().get("affiliations") or []
        return affiliations[0] if affiliations else None
