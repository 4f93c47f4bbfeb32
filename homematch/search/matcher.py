"""
HomeMatch Requirement Matcher

Scores similarity-search candidates against a buyer's must-have and
nice-to-have terms.

    composite = MUST_HAVE_WEIGHT × (must matched / must total)
              + NICE_TO_HAVE_WEIGHT × (nice matched / nice total)

A ratio is 0 when its list is empty.  Matching is a case-insensitive
substring test over the candidate's description, features and amenities.
Each result carries the caller's terms that matched, as given.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from homematch.config import settings
from homematch.search.filters import SearchFilters
from homematch.search.search import MatchResult

logger = structlog.get_logger(__name__)


@dataclass
class RequirementMatchOutcome:
    """Scored matches, or the error that prevented scoring."""
    matches: list[MatchResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def composite_score(
    must_matched: int,
    must_total: int,
    nice_matched: int,
    nice_total: int,
) -> float:
    """Weighted share of satisfied requirements, always within [0, 1]."""
    must_ratio = must_matched / must_total if must_total else 0.0
    nice_ratio = nice_matched / nice_total if nice_total else 0.0
    score = settings.MUST_HAVE_WEIGHT * must_ratio + settings.NICE_TO_HAVE_WEIGHT * nice_ratio
    return min(1.0, max(0.0, score))


def _clean_terms(terms: Optional[list[str]]) -> list[str]:
    return [t for t in (terms or []) if t and t.strip()]


def _matched_terms(terms: list[str], text: str) -> list[str]:
    return [t for t in terms if t.strip().lower() in text]


def _flatten(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value if v is not None)
    return str(value)


def candidate_text(prop: dict[str, Any]) -> str:
    """Lower-cased description + features + amenities of one property."""
    return " ".join(
        _flatten(prop.get(key)) for key in ("description", "features", "amenities")
    ).lower()


class RequirementMatcher:
    """Runs a similarity search for the requirements, then scores each hit."""

    def __init__(self, search_engine):
        self._search_engine = search_engine

    def match(
        self,
        must_haves: Optional[list[str]],
        nice_to_haves: Optional[list[str]],
        filters: Optional[SearchFilters] = None,
        limit: Optional[int] = None,
    ) -> RequirementMatchOutcome:
        must = _clean_terms(must_haves)
        nice = _clean_terms(nice_to_haves)
        query = " ".join(t.strip().lower() for t in must + nice)

        try:
            candidates = self._search_engine.search(query, filters, limit)

            for result in candidates:
                text = candidate_text(result.property)
                result.must_have_matches = _matched_terms(must, text)
                result.nice_to_have_matches = _matched_terms(nice, text)
                result.composite_score = round(
                    composite_score(
                        len(result.must_have_matches), len(must),
                        len(result.nice_to_have_matches), len(nice),
                    ),
                    4,
                )

            # sorted() is stable, so similarity order survives among equal scores
            ranked = sorted(candidates, key=lambda r: r.composite_score, reverse=True)
        except Exception as exc:
            logger.error(
                "requirement_match_failed",
                must_have_count=len(must),
                nice_to_have_count=len(nice),
                error=str(exc),
            )
            return RequirementMatchOutcome(error=str(exc))

        logger.info(
            "requirement_match",
            must_have_count=len(must),
            nice_to_have_count=len(nice),
            result_count=len(ranked),
        )
        return RequirementMatchOutcome(matches=ranked)
