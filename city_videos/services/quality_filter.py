"""
Relevance and quality admission for raw search candidates.

Pure boolean admission: each rule is a hard reject, checked in order.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from city_videos.config import SearchConfig, DEFAULT_EXCLUDE_TERMS
from city_videos.models import RawCandidate, VideoResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterConfig:
    """Thresholds and denylist for the quality filter."""
    min_views: int = 10000
    min_duration_seconds: int = 600
    exclude_terms: Tuple[str, ...] = tuple(DEFAULT_EXCLUDE_TERMS)

    def __post_init__(self):
        # accept any sequence, store it frozen
        object.__setattr__(self, "exclude_terms", tuple(self.exclude_terms))

    @classmethod
    def from_search_config(cls, search_config: SearchConfig) -> "FilterConfig":
        return cls(
            min_views=search_config.min_views,
            min_duration_seconds=search_config.min_duration_seconds,
            exclude_terms=tuple(search_config.exclude_terms),
        )


def relevance_terms(place: str, local_keywords: Optional[Sequence[str]] = None) -> List[str]:
    """Lower-cased place text plus the first token of each local keyword."""
    terms = []
    place = " ".join((place or "").split()).lower()
    if place:
        terms.append(place)
    for keyword in local_keywords or []:
        tokens = (keyword or "").split()
        if tokens and tokens[0].lower() not in terms:
            terms.append(tokens[0].lower())
    return terms


def rejection_reason(candidate: RawCandidate, terms: Sequence[str], config: FilterConfig) -> Optional[str]:
    """Return why a candidate is rejected, or None when it is admitted."""
    if candidate.views < config.min_views:
        return "views"
    if candidate.duration_seconds < config.min_duration_seconds:
        return "duration"
    text = f"{candidate.title}\n{candidate.description}".lower()
    if not any(term in text for term in terms):
        return "relevance"
    for excluded in config.exclude_terms:
        if excluded and excluded.lower() in text:
            return "excluded"
    return None


def filter_candidates(candidates: Sequence[RawCandidate], place: str,
                      local_keywords: Optional[Sequence[str]] = None,
                      config: Optional[FilterConfig] = None) -> List[VideoResult]:
    """Admit candidates that pass every rule and map them to VideoResult.

    Input order is preserved.
    """
    config = config or FilterConfig()
    terms = relevance_terms(place, local_keywords)
    accepted = []
    rejected = {}
    for candidate in candidates:
        reason = rejection_reason(candidate, terms, config)
        if reason:
            rejected[reason] = rejected.get(reason, 0) + 1
            continue
        accepted.append(VideoResult.from_candidate(candidate))
    if rejected:
        logger.debug("Filter for %r rejected %s", place, rejected)
    return accepted
