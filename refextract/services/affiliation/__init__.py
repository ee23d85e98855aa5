"""
Tiered affiliation resolver for first authors.

Tiers, tried strictly in order until one produces an affiliation:
1. Semantic Scholar (structured, free, rate limited)
2. Perplexity AI (only when an API key is configured)
3. OpenAlex (fallback)

A miss or an HTTP error in one tier silently moves on to the next.
"""

import logging
from typing import Protocol

import httpx

from ...config import get_settings
from ...models import AffiliationResult, AffiliationSource, Confidence
from .matching import authors_match, clean_query_text, normalize_author_name, parse_year
from .openalex import OpenAlexTier
from .perplexity import PerplexityTier, clean_affiliation_answer
from .semantic_scholar import SemanticScholarTier

logger = logging.getLogger(__name__)

__all__ = [
    "AffiliationResolver",
    "AffiliationTier",
    "OpenAlexTier",
    "PerplexityTier",
    "SemanticScholarTier",
    "authors_match",
    "clean_affiliation_answer",
    "clean_query_text",
    "close_affiliation_resolver",
    "get_affiliation_resolver",
    "normalize_author_name",
]

# Works older than this are historical; no modern affiliation is expected
HISTORICAL_YEAR_CUTOFF = 1900


class AffiliationTier(Protocol):
    """One ranked lookup source."""

    name: str
    source: AffiliationSource
    confidence: Confidence

    async def lookup(self, author_name: str, title: str, year: str) -> str | None: ...


class AffiliationResolver:
    """Resolves the affiliation of a reference's first author."""

    def __init__(self, tiers: list[AffiliationTier]):
        """
        Initialize the resolver.

        Args:
            tiers: Lookup sources in priority order.
        """
        self.tiers = tiers

    async def resolve(self, author_name: str, title: str, year: str = "") -> AffiliationResult:
        """
        Find the affiliation of ``author_name`` when publishing ``title``.

        Returns a result with ``source`` set to the winning tier, ``none`` if
        every tier missed, ``skipped-historical`` for pre-1900 works and
        ``error`` if a tier raised unexpectedly.
        """
        if not author_name or not title:
            return AffiliationResult()

        year_number = parse_year(year)
        if year_number and year_number < HISTORICAL_YEAR_CUTOFF:
            logger.info("Skipping historical work from %s - no modern affiliation expected", year)
            return AffiliationResult(source=AffiliationSource.SKIPPED_HISTORICAL)

        logger.info("Finding affiliation for: %s - %s...", author_name, title[:50])
        try:
            for rank, tier in enumerate(self.tiers, start=1):
                logger.info("[Tier %d] Trying %s...", rank, tier.name)
                affiliation = await tier.lookup(author_name, title, year)
                if affiliation:
                    logger.info("[%s] Found: %s", tier.name, affiliation)
                    return AffiliationResult(
                        affiliation=affiliation,
                        confidence=tier.confidence,
                        source=tier.source,
                    )
                logger.info("[Tier %d] %s: not found", rank, tier.name)
        except Exception:
            logger.exception("Error finding affiliation for %s", author_name)
            return AffiliationResult(source=AffiliationSource.ERROR)

        logger.warning("No affiliation found for: %s", author_name)
        return AffiliationResult()


# =============================================================================
# Singleton Factory
# =============================================================================

_http_client: httpx.AsyncClient | None = None
_affiliation_resolver: AffiliationResolver | None = None


def get_affiliation_resolver() -> AffiliationResolver:
    """Get or create the affiliation resolver singleton."""
    global _http_client, _affiliation_resolver
    if _affiliation_resolver is None:
        settings = get_settings()
        _http_client = httpx.AsyncClient(
            timeout=settings.lookup_timeout_seconds,
            headers={"User-Agent": settings.user_agent},
        )

        tiers: list[AffiliationTier] = [
            SemanticScholarTier(
                _http_client, delay_seconds=settings.semantic_scholar_delay_seconds
            )
        ]
        if settings.perplexity_api_key:
            tiers.append(
                PerplexityTier(
                    _http_client,
                    api_key=settings.perplexity_api_key,
                    model=settings.perplexity_model,
                )
            )
        else:
            logger.warning("[Perplexity] API key not configured, skipping tier 2")
        tiers.append(OpenAlexTier(_http_client))

        _affiliation_resolver = AffiliationResolver(tiers)
    return _affiliation_resolver


async def close_affiliation_resolver() -> None:
    """Close the shared HTTP client (application shutdown)."""
    global _http_client, _affiliation_resolver
    if _http_client is not None:
        await _http_client.aclose()
    _http_client = None
    _affiliation_resolver = None
