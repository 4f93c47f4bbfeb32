"""
HomeMatch Property Matching Service

Caller-facing facade over the search, requirement matching and indexing
components.  Instances are built once by homematch.main.build_matching_service.

Methods:
    search_similar_properties           — Free-text semantic search
    search_by_requirements              — Must-have / nice-to-have scoring
    process_properties_for_embeddings   — Sequential batch re-embedding
    match_lead                          — Properties for a lead's enquiry

Rules:
    - Filters may be given as a SearchFilters or a plain dict
    - Search methods never raise for embedding or database failures
"""

from typing import Any, Iterable, Optional, Union

import structlog

from homematch.search.filters import SearchFilters, filters_from_lead_text
from homematch.search.search import MatchResult

logger = structlog.get_logger(__name__)

DEFAULT_LEAD_QUERY = "property real estate"
DEFAULT_LEAD_LIMIT = 10

FiltersArg = Optional[Union[SearchFilters, dict[str, Any]]]


def _coerce_filters(filters: FiltersArg) -> SearchFilters:
    if isinstance(filters, SearchFilters):
        return filters
    return SearchFilters.from_dict(filters)


class PropertyMatchingService:
    """Entry point for similarity search, requirement matching and indexing."""

    def __init__(self, search_engine, matcher, indexer):
        self._search_engine = search_engine
        self._matcher = matcher
        self._indexer = indexer

    def search_similar_properties(
        self,
        query: str,
        filters: FiltersArg = None,
        limit: Optional[int] = None,
    ) -> list[MatchResult]:
        return self._search_engine.search(query, _coerce_filters(filters), limit)

    def search_by_requirements(
        self,
        must_haves: Optional[list[str]],
        nice_to_haves: Optional[list[str]],
        filters: FiltersArg = None,
        limit: Optional[int] = None,
    ) -> list[MatchResult]:
        """
        Ranked matches by composite score.

        Returns [] when matching fails; the failure itself is logged by
        the matcher.
        """
        outcome = self._matcher.match(
            must_haves, nice_to_haves, _coerce_filters(filters), limit
        )
        return outcome.matches if outcome.ok else []

    def process_properties_for_embeddings(self, records: Iterable[dict[str, Any]]) -> None:
        self._indexer.process_properties_for_embeddings(records)

    def match_lead(
        self,
        summary: Optional[str],
        message: Optional[str],
        limit: int = DEFAULT_LEAD_LIMIT,
    ) -> list[MatchResult]:
        """
        Suggest properties for a lead.

        The query is the lead's summary followed by their message.  Filters
        (rooms, budget, place) are read from the summary, or from the message
        when there is no summary.
        """
        summary = (summary or "").strip()
        message = (message or "").strip()

        query = " ".join(part for part in (summary, message) if part) or DEFAULT_LEAD_QUERY
        filters = filters_from_lead_text(summary or message)

        logger.info(
            "match_lead",
            has_summary=bool(summary),
            has_message=bool(message),
            filter_keys=filters.active_keys(),
        )
        return self._search_engine.search(query, filters, limit)
