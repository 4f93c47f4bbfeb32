"""
HomeMatch Semantic Search Module

Implements semantic similarity search over property embeddings using
pgvector's cosine distance operator (<=>), degrading to the structured
fallback search whenever the vector path cannot produce results.

Contents:
    MatchResult              — One ranked property in a search response
    resolve_limit            — Apply the default / maximum result limits
    SimilaritySearchEngine   — Vector search with post-filtering and fallback

Rules:
    - Always rank by the <=> cosine distance operator, ties by property_id
    - similarity_score = 1 - cosine_distance, clamped to [0, 1]
    - Never log embedding vectors — only metadata
    - The search never raises for embedding or database failures; it falls back
    - Invalid limits raise ValueError before any work is done
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import structlog

from homematch.config import settings
from homematch.db import dal
from homematch.search.filters import SearchFilters, passes_post_filters

logger = structlog.get_logger(__name__)

SOURCE_VECTOR = "vector"
SOURCE_FALLBACK = "fallback"


@dataclass
class MatchResult:
    """One ranked property in a search response."""
    property_id: str
    similarity_score: float
    vector_distance: float
    source: str = SOURCE_VECTOR
    must_have_matches: list[str] = field(default_factory=list)
    nice_to_have_matches: list[str] = field(default_factory=list)
    composite_score: float = 0.0
    property: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def resolve_limit(limit: Optional[int]) -> int:
    """
    Return the effective result limit.

    ``None`` means SEARCH_DEFAULT_LIMIT.

    Raises:
        ValueError: If limit is below 1 or exceeds SEARCH_MAX_LIMIT.
    """
    if limit is None:
        return settings.SEARCH_DEFAULT_LIMIT
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    if limit > settings.SEARCH_MAX_LIMIT:
        raise ValueError(
            f"limit ({limit}) exceeds maximum ({settings.SEARCH_MAX_LIMIT})"
        )
    return limit


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class SimilaritySearchEngine:
    """
    Ranks properties by semantic similarity to a free-text query.

    Collaborators are injected: a session factory (``sessionmaker``), an
    ``EmbeddingGenerator`` and a ``FallbackSearchEngine``.
    """

    def __init__(self, session_factory, embedder, fallback):
        self._session_factory = session_factory
        self._embedder = embedder
        self._fallback = fallback

    def search(
        self,
        query_text: str,
        filters: Optional[SearchFilters] = None,
        limit: Optional[int] = None,
    ) -> list[MatchResult]:
        """
        Return up to *limit* properties most similar to *query_text*.

        Steps:
            1. Embed the query; an empty vector or an embedding error → fallback
            2. Fetch limit × SEARCH_OVERFETCH_FACTOR nearest active properties
            3. Drop candidates failing the type / room / price filters
            4. Non-empty → truncate to limit and score
            5. Database error or nothing left → fallback with the same
               filters and query text

        The location filter is only enforced on the fallback path.
        """
        start_time = time.time()
        filters = filters or SearchFilters()
        limit = resolve_limit(limit)

        # 1. Embed the query text
        try:
            query_vector = self._embedder.embed(query_text or "")
        except Exception as exc:
            logger.warning("similarity_search_embedding_failed", error=str(exc))
            return self._degrade("embedding_failed", query_text, filters, limit)

        if not query_vector:
            return self._degrade("empty_query_embedding", query_text, filters, limit)

        # 2. Candidate query
        candidate_limit = limit * settings.SEARCH_OVERFETCH_FACTOR
        try:
            with self._session_factory() as db:
                rows = dal.nearest_properties(query_vector, candidate_limit, db=db)
        except RuntimeError as exc:
            logger.warning("similarity_search_query_failed", error=str(exc))
            return self._degrade("query_failed", query_text, filters, limit)

        if not rows:
            return self._degrade("no_candidates", query_text, filters, limit)

        # 3. Local post-filter
        kept = [row for row in rows if passes_post_filters(row, filters)]
        if not kept:
            return self._degrade("post_filter_empty", query_text, filters, limit)

        # 4. Score, order, truncate
        results = []
        for row in kept:
            distance = float(row.pop("cosine_distance"))
            results.append(
                MatchResult(
                    property_id=row["property_id"],
                    similarity_score=round(_clamp(1.0 - distance), 4),
                    vector_distance=distance,
                    source=SOURCE_VECTOR,
                    property=row,
                )
            )
        results.sort(key=lambda r: (r.vector_distance, r.property_id))
        results = results[:limit]

        elapsed = round(time.time() - start_time, 3)
        logger.info(
            "similarity_search",
            query=(query_text or "")[:100],
            filter_keys=filters.active_keys(),
            result_count=len(results),
            candidate_count=len(rows),
            elapsed_seconds=elapsed,
        )
        return results

    def _degrade(
        self,
        reason: str,
        query_text: Optional[str],
        filters: SearchFilters,
        limit: int,
    ) -> list[MatchResult]:
        logger.info("similarity_search_fallback", reason=reason)
        return self._fallback.search(filters, limit, query_text=query_text)
