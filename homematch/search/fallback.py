"""
HomeMatch Fallback Search

Structured database filtering plus keyword matching over each candidate's
searchable text.  Used whenever the vector path comes back empty or fails.

Rules:
    - Candidates come from dal.filter_properties, cheapest first
    - Query terms are OR-matched; without a query the interest keywords are
    - Every result gets the same fixed FALLBACK_SIMILARITY_SCORE
    - A database failure is logged and returns []; it never raises
"""

import time
from typing import Optional

import structlog

from homematch.config import settings
from homematch.db import dal
from homematch.search.filters import SearchFilters
from homematch.search.normalizer import searchable_text
from homematch.search.search import SOURCE_FALLBACK, MatchResult, resolve_limit

logger = structlog.get_logger(__name__)

# Matched when the caller gives no query text
DEFAULT_INTEREST_KEYWORDS: tuple[str, ...] = (
    "covered deck",
    "deck",
    "outdoor",
    "patio",
    "porch",
    "luxury",
    "custom",
    "premium",
    "high-end",
    "gourmet",
    "fireplace",
    "kitchen",
    "dining",
    "entertaining",
    "mountain views",
    "lake",
    "golf",
    "gated",
    "private",
    "doors",
    "floor to ceiling",
    "stone",
    "alder",
)


def query_terms(query_text: Optional[str]) -> list[str]:
    """Lower-cased whitespace-separated terms of the query ([] when blank)."""
    return (query_text or "").lower().split()


class FallbackSearchEngine:
    """Filter-and-keyword search over the properties table."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def search(
        self,
        filters: Optional[SearchFilters] = None,
        limit: Optional[int] = None,
        query_text: Optional[str] = None,
    ) -> list[MatchResult]:
        start_time = time.time()
        filters = filters or SearchFilters()
        limit = resolve_limit(limit)

        try:
            with self._session_factory() as db:
                rows = dal.filter_properties(
                    filters, limit * settings.SEARCH_OVERFETCH_FACTOR, db=db
                )
        except RuntimeError as exc:
            logger.error("fallback_search_failed", error=str(exc))
            return []

        terms = query_terms(query_text) or list(DEFAULT_INTEREST_KEYWORDS)

        score = settings.FALLBACK_SIMILARITY_SCORE
        results = []
        for row in rows:
            blob = searchable_text(row)
            if not any(term in blob for term in terms):
                continue
            results.append(
                MatchResult(
                    property_id=row["property_id"],
                    similarity_score=score,
                    vector_distance=round(1.0 - score, 4),
                    source=SOURCE_FALLBACK,
                    property=row,
                )
            )
            if len(results) == limit:
                break

        logger.info(
            "fallback_search",
            query=(query_text or "")[:100],
            used_default_keywords=not query_terms(query_text),
            filter_keys=filters.active_keys(),
            result_count=len(results),
            candidate_count=len(rows),
            elapsed_seconds=round(time.time() - start_time, 3),
        )
        return results
