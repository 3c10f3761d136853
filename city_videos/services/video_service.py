"""
Video query facade used by the HTTP routes.

Owns the cache, orchestrator, rating store and discovery pool for the life
of the process. Built once at startup by build_video_service().
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import aiohttp

from city_videos.config import Config
from city_videos.models import VideoMode, VideoResult
from city_videos.providers.base import ConfigurationError, VideoSearchProvider
from city_videos.providers.youtube_provider import YouTubeSearchClient
from .orchestrator import SearchOrchestrator
from .quality_filter import FilterConfig
from .random_pool import RandomVideoPool
from .ratings import RatingStore, attach_and_sort, simple_score, make_weighted_score
from .video_cache import (
    CacheKey,
    CacheSource,
    MemoryVideoCache,
    PersistentVideoCache,
    TwoTierVideoCache,
)

logger = logging.getLogger(__name__)


@dataclass
class VideoQueryResult:
    videos: List[VideoResult]
    source: CacheSource


class VideoService:
    """Query, rate and discover videos."""

    def __init__(self, cache: TwoTierVideoCache, orchestrator: Optional[SearchOrchestrator],
                 ratings: Optional[RatingStore] = None, pool: Optional[RandomVideoPool] = None,
                 cache_version: int = 3, fetch_count: int = 50):
        self.cache = cache
        self.orchestrator = orchestrator
        self.ratings = ratings
        self.pool = pool or RandomVideoPool(cache.persistent, ratings)
        self.cache_version = cache_version
        self.fetch_count = fetch_count

    async def query(self, place: str, mode=VideoMode.VLOG, region: Optional[str] = None,
                    local_keywords: Optional[Sequence[str]] = None, count: int = 8) -> VideoQueryResult:
        """Return up to count rated videos for a place, with their provenance.

        Raises:
            ConfigurationError: If no search provider is configured
            QuotaExceededError: If the provider quota is exhausted on a miss
            ValueError: If place is empty or count is not positive
        """
        if self.orchestrator is None:
            raise ConfigurationError("Video search provider is not configured")
        if not (place or "").strip():
            raise ValueError("place is required")
        if count < 1:
            raise ValueError(f"Invalid result count: {count}")
        mode = mode if isinstance(mode, VideoMode) else VideoMode.parse(mode)
        keywords = list(local_keywords or [])
        key = CacheKey.build(place, region, mode, keywords, version=self.cache_version)

        # One cached set serves every count for this key
        fetch_count = max(self.fetch_count, count)

        async def fetch() -> List[VideoResult]:
            return await self.orchestrator.run(place, mode, region, keywords, fetch_count)

        lookup = await self.cache.lookup(key, fetch)
        videos = await attach_and_sort(lookup.videos, self.ratings, simple_score)
        return VideoQueryResult(videos=videos[:count], source=lookup.source)

    async def rate(self, video_id: str, is_good: bool):
        """Record one vote.

        Raises:
            ConfigurationError: If no rating store is configured
        """
        if self.ratings is None:
            raise ConfigurationError("Rating store is not configured")
        return await self.ratings.record(video_id, is_good)

    async def random(self, mode=VideoMode.SCENIC, count: int = 10) -> List[VideoResult]:
        return await self.pool.sample(mode, count)


def build_video_service(config: Config, session: Optional[aiohttp.ClientSession],
                        redis_client=None,
                        provider: Optional[VideoSearchProvider] = None) -> VideoService:
    """Wire the video pipeline from configuration.

    Without Redis both the persistent tier and ratings are disabled; without
    an API key queries fail with ConfigurationError.
    """
    cache_cfg = config.cache_config
    timeout = config.timeout_config.cache

    persistent = None
    ratings = None
    if redis_client is not None:
        persistent = PersistentVideoCache(redis_client, ttl_seconds=cache_cfg.persistent_ttl, timeout=timeout)
        ratings = RatingStore(redis_client, batch_size=config.rating_config.batch_size, timeout=timeout)

    cache = TwoTierVideoCache(
        MemoryVideoCache(capacity=cache_cfg.memory_capacity, ttl_seconds=cache_cfg.memory_ttl),
        persistent,
        single_flight=cache_cfg.single_flight,
    )

    if provider is None and config.youtube_api_key and session is not None:
        provider = YouTubeSearchClient(config.youtube_api_key, session,
                                       search_config=config.search_config,
                                       timeout_config=config.timeout_config)
    orchestrator = None
    if provider is not None:
        orchestrator = SearchOrchestrator(provider, FilterConfig.from_search_config(config.search_config),
                                          max_results_per_tier=config.search_config.max_results)
    else:
        logger.warning("No video search provider configured; /api/youtube will fail")

    rating_cfg = config.rating_config
    pool = RandomVideoPool(
        persistent,
        ratings,
        size=rating_cfg.pool_size,
        ttl_seconds=rating_cfg.pool_ttl,
        score_fn=make_weighted_score(rating_cfg.pool_like_weight, rating_cfg.pool_dislike_weight),
    )
    return VideoService(cache, orchestrator, ratings, pool, cache_version=cache_cfg.version,
                        fetch_count=cache_cfg.fetch_count)
