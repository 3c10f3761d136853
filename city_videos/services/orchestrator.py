"""
Lazy multi-query search orchestration.

Tiers run strictly one after another so that quota is only spent on a
fallback tier when the earlier ones did not yield enough videos.

Per tier the state moves PENDING -> ACCEPTED (enough, stop),
PENDING -> CONTINUE (try next tier) or PENDING -> ABORT (quota, raise).
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Union

from city_videos.models import VideoMode, VideoResult
from city_videos.providers.base import VideoSearchProvider, QuotaExceededError, ProviderError
from .query_builder import build_queries
from .quality_filter import FilterConfig, filter_candidates

logger = logging.getLogger(__name__)


class TierState(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CONTINUE = "continue"
    ABORT = "abort"


def next_state(collected: int, requested: int, error: Optional[Exception] = None) -> TierState:
    """Decide what happens after a tier completes.

    Args:
        collected: Distinct accepted videos gathered so far
        requested: Number of videos the caller asked for
        error: Exception raised by the tier's search call, if any
    """
    if isinstance(error, QuotaExceededError):
        return TierState.ABORT
    if collected >= requested:
        return TierState.ACCEPTED
    return TierState.CONTINUE


@dataclass
class TierRecord:
    query: str
    state: TierState = TierState.PENDING
    candidates: int = 0
    accepted: int = 0
    error: Optional[str] = None


@dataclass
class OrchestrationResult:
    videos: List[VideoResult]
    tiers: List[TierRecord] = field(default_factory=list)


def merge_unique(accumulator: List[VideoResult], seen: set, videos: Sequence[VideoResult]) -> int:
    """Append videos whose id is not yet seen; first seen wins. Returns count added."""
    added = 0
    for video in videos:
        if video.id in seen:
            continue
        seen.add(video.id)
        accumulator.append(video)
        added += 1
    return added


class SearchOrchestrator:
    """Runs query tiers against a search provider and the quality filter."""

    def __init__(self, provider: VideoSearchProvider, filter_config: Optional[FilterConfig] = None,
                 max_results_per_tier: Optional[int] = None):
        self.provider = provider
        self.filter_config = filter_config or FilterConfig()
        self.max_results_per_tier = max_results_per_tier

    async def run_detailed(self, place: str, mode: Union[VideoMode, str, None] = VideoMode.VLOG,
                           region: Optional[str] = None,
                           local_keywords: Optional[Sequence[str]] = None,
                           count: int = 8) -> OrchestrationResult:
        """Run tiers until count videos are collected.

        Raises:
            QuotaExceededError: As soon as any tier reports it; later tiers are skipped
        """
        if count < 1:
            raise ValueError(f"Invalid result count: {count}")
        queries = build_queries(place, mode, region, local_keywords)
        collected: List[VideoResult] = []
        seen: set = set()
        records: List[TierRecord] = []

        for index, query in enumerate(queries, start=1):
            record = TierRecord(query=query)
            records.append(record)
            error: Optional[Exception] = None
            try:
                candidates = await self.provider.search(query, region=region,
                                                        max_results=self.max_results_per_tier)
            except ProviderError as e:
                error = e
                candidates = []

            record.state = next_state(len(collected), count, error)
            if record.state is TierState.ABORT:
                record.error = str(error)
                logger.warning("Tier %d/%d %r aborted on quota: %s", index, len(queries), query, error)
                raise error

            if error is not None:
                record.error = str(error)
                logger.warning("Tier %d/%d %r failed, continuing: %s", index, len(queries), query, error)

            accepted = filter_candidates(candidates, place, local_keywords, self.filter_config)
            record.candidates = len(candidates)
            record.accepted = merge_unique(collected, seen, accepted)
            record.state = next_state(len(collected), count)
            logger.info("Tier %d/%d %r: %d candidates, %d new accepted, %d total",
                        index, len(queries), query, record.candidates, record.accepted, len(collected))
            if record.state is TierState.ACCEPTED:
                break

        return OrchestrationResult(videos=collected[:count], tiers=records)

    async def run(self, place: str, mode: Union[VideoMode, str, None] = VideoMode.VLOG,
                  region: Optional[str] = None,
                  local_keywords: Optional[Sequence[str]] = None,
                  count: int = 8) -> List[VideoResult]:
        result = await self.run_detailed(place, mode, region, local_keywords, count)
        return result.videos
