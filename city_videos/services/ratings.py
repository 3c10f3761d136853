"""
Community ratings for videos.

Each video has a Redis hash ``video_rating:<id>`` with ``likes`` and
``dislikes``. Both fields are only ever changed with HINCRBY inside a MULTI
pipeline, so concurrent votes never lose updates.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from city_videos.models import Rating, VideoResult
from city_videos.providers.utils import chunked
from .video_cache import STORE_ERRORS

logger = logging.getLogger(__name__)

RATING_PREFIX = "video_rating:"

ScoreFn = Callable[[int, int], int]


def simple_score(likes: int, dislikes: int) -> int:
    """Per-query ranking score."""
    return likes - dislikes


def weighted_score(likes: int, dislikes: int, like_weight: int = 5, dislike_weight: int = 10) -> int:
    """Discovery pool ranking score; dislikes weigh double by default."""
    return likes * like_weight - dislikes * dislike_weight


def make_weighted_score(like_weight: int = 5, dislike_weight: int = 10) -> ScoreFn:
    def score(likes: int, dislikes: int) -> int:
        return weighted_score(likes, dislikes, like_weight, dislike_weight)
    return score


def _to_int(value) -> int:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode()
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _field(record: dict, name: str):
    if name in record:
        return record[name]
    return record.get(name.encode())


class RatingStore:
    """Redis-backed like/dislike counters."""

    def __init__(self, redis_client, batch_size: int = 100, timeout: float = 5.0):
        self.redis = redis_client
        self.batch_size = batch_size
        self.timeout = timeout

    async def record(self, video_id: str, is_good: bool) -> Tuple[int, int]:
        """Atomically count one vote and return the new (likes, dislikes).

        A missing record is created with the voted field at 1 and the other at 0.

        Raises:
            ValueError: If video_id is empty
            RedisError, OSError, asyncio.TimeoutError: If the store fails
        """
        if not video_id:
            raise ValueError("video_id is required")
        key = RATING_PREFIX + video_id
        like_step, dislike_step = (1, 0) if is_good else (0, 1)

        async def _execute():
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hincrby(key, "likes", like_step)
                pipe.hincrby(key, "dislikes", dislike_step)
                return await pipe.execute()

        likes, dislikes = await asyncio.wait_for(_execute(), timeout=self.timeout)
        logger.info("Rated %s %s -> likes=%s dislikes=%s", video_id, "good" if is_good else "bad", likes, dislikes)
        return int(likes), int(dislikes)

    async def fetch(self, video_ids: Sequence[str]) -> Dict[str, Tuple[int, int]]:
        """Batch fetch (likes, dislikes) for ids; unknown ids map to (0, 0).

        Raises:
            RedisError, OSError, asyncio.TimeoutError: If the store fails
        """
        unique = list(dict.fromkeys(v for v in video_ids if v))
        ratings: Dict[str, Tuple[int, int]] = {}
        for batch in chunked(unique, self.batch_size):
            async def _execute(batch=batch):
                async with self.redis.pipeline(transaction=False) as pipe:
                    for vid in batch:
                        pipe.hgetall(RATING_PREFIX + vid)
                    return await pipe.execute()

            records = await asyncio.wait_for(_execute(), timeout=self.timeout)
            for vid, record in zip(batch, records):
                record = record or {}
                ratings[vid] = (_to_int(_field(record, "likes")), _to_int(_field(record, "dislikes")))
        for vid in unique:
            ratings.setdefault(vid, (0, 0))
        return ratings


async def attach_and_sort(videos: Sequence[VideoResult], store: Optional[RatingStore],
                          score_fn: ScoreFn = simple_score) -> List[VideoResult]:
    """Attach ratings and return a new list stably sorted by descending score.

    Store failures degrade to zero ratings so the caller still gets results.
    """
    ratings: Dict[str, Tuple[int, int]] = {}
    if store is not None and videos:
        try:
            ratings = await store.fetch([v.id for v in videos])
        except STORE_ERRORS as e:
            logger.warning("Rating fetch failed, using zero ratings: %r", e)
            ratings = {}

    rated = []
    for video in videos:
        likes, dislikes = ratings.get(video.id, (0, 0))
        rated.append(video.with_rating(Rating(likes=likes, dislikes=dislikes, score=score_fn(likes, dislikes))))
    # sorted() is stable, ties keep input order
    return sorted(rated, key=lambda v: v.rating.score, reverse=True)
