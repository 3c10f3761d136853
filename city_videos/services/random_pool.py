"""
Global random discovery pool.

Rebuilding reads every cached search document, so the ranked pool is kept
in process and only rebuilt on the first request after its TTL lapses.
"""
import asyncio
import json
import logging
import random
import time
from typing import Callable, Dict, List, Optional, Tuple

from city_videos.models import VideoMode, VideoResult
from .ratings import RatingStore, ScoreFn, attach_and_sort, make_weighted_score
from .video_cache import CacheKey, PersistentVideoCache

logger = logging.getLogger(__name__)


class RandomVideoPool:
    """Top-N videos by weighted score, partitioned by mode."""

    def __init__(self, persistent: Optional[PersistentVideoCache], ratings: Optional[RatingStore],
                 size: int = 300, ttl_seconds: float = 6 * 3600,
                 score_fn: Optional[ScoreFn] = None,
                 clock: Callable[[], float] = time.time,
                 rng: Optional[random.Random] = None):
        self.persistent = persistent
        self.ratings = ratings
        self.size = size
        self.ttl_seconds = ttl_seconds
        self.score_fn = score_fn or make_weighted_score()
        self._clock = clock
        self._rng = rng or random.Random()
        self._by_mode: Dict[str, List[VideoResult]] = {}
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def is_stale(self) -> bool:
        return self._clock() > self._expires_at or not self._by_mode

    async def _collect(self) -> Tuple[List[VideoResult], Dict[str, str]]:
        """Flatten all documents; also map each video id to its document's mode."""
        seen = set()
        collected: List[VideoResult] = []
        modes: Dict[str, str] = {}
        skipped = 0
        async for doc_id, raw in self.persistent.iter_documents():
            try:
                key = CacheKey.decode(doc_id)
                videos = [VideoResult.from_dict(v) for v in json.loads(raw)["videos"]]
            except (ValueError, KeyError, TypeError) as e:
                skipped += 1
                logger.debug("Skipping pool document %s: %r", doc_id, e)
                continue
            for video in videos:
                if video.id in seen:
                    continue
                seen.add(video.id)
                modes[video.id] = key.mode
                collected.append(video)
        if skipped:
            logger.warning("Pool rebuild skipped %d undecodable documents", skipped)
        return collected, modes

    async def rebuild(self) -> int:
        """Rebuild the pool now. Returns the number of pooled videos.

        Raises:
            Backend errors from scanning the persistent cache
        """
        if self.persistent is None:
            self._by_mode = {}
            self._expires_at = self._clock() + self.ttl_seconds
            return 0
        videos, modes = await self._collect()
        ranked = (await attach_and_sort(videos, self.ratings, self.score_fn))[:self.size]
        by_mode: Dict[str, List[VideoResult]] = {}
        for video in ranked:
            by_mode.setdefault(modes[video.id], []).append(video)
        self._by_mode = by_mode
        self._expires_at = self._clock() + self.ttl_seconds
        logger.info("Rebuilt random pool with %d videos (%s)", len(ranked),
                    ", ".join(f"{m}={len(v)}" for m, v in sorted(by_mode.items())))
        return len(ranked)

    async def ensure_fresh(self) -> None:
        """Rebuild if stale; failures keep the previous pool."""
        if not self.is_stale():
            return
        async with self._lock:
            if not self.is_stale():
                return
            try:
                await self.rebuild()
            except Exception:
                # Maintenance job: the request is still served from the old pool
                logger.exception("Random pool rebuild failed")

    async def sample(self, mode, count: int = 10) -> List[VideoResult]:
        """Random sample of up to count pooled videos for mode."""
        await self.ensure_fresh()
        mode_tag = mode.value if isinstance(mode, VideoMode) else VideoMode.parse(mode).value
        pool = self._by_mode.get(mode_tag, [])
        if not pool or count < 1:
            return []
        return self._rng.sample(pool, min(count, len(pool)))

    def snapshot(self) -> Dict[str, int]:
        return {mode: len(videos) for mode, videos in self._by_mode.items()}
