"""
Two-tier cache for video search results.

Lookups go memory -> Redis document -> live search. Fresh non-empty results
are written to Redis first, then to memory. Empty results are never cached
so the next request retries the provider.

Keys are structured CacheKey records. The schema version is part of the
key, so bumping CACHE_VERSION orphans every older entry without a migration.
"""
import asyncio
import base64
import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from redis.exceptions import RedisError

from city_videos.models import VideoMode, VideoResult
from city_videos.providers.utils import chunked

logger = logging.getLogger(__name__)

DOC_PREFIX = "video_cache:"

# Failures of the persistent tier never reach the caller
STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


def _normalize(text: Optional[str]) -> str:
    return " ".join((text or "").split())


@dataclass(frozen=True)
class CacheKey:
    """Identity of one search: version, place, region, mode and keywords."""
    version: int
    place: str
    region: str
    mode: str
    keywords: Tuple[str, ...] = ()

    @classmethod
    def build(cls, place: str, region: Optional[str], mode: Any,
              keywords: Optional[Sequence[str]] = None, version: int = 3) -> "CacheKey":
        mode_tag = mode.value if isinstance(mode, VideoMode) else VideoMode.parse(mode).value
        normalized = tuple(k for k in (_normalize(k) for k in keywords or []) if k)
        return cls(
            version=version,
            place=_normalize(place),
            region=_normalize(region).upper(),
            mode=mode_tag,
            keywords=normalized,
        )

    def to_string(self) -> str:
        """Readable form for logs."""
        return "|".join([f"v{self.version}", self.place, self.region, self.mode, *self.keywords])

    def encode(self) -> str:
        """Storage-safe document id for this key."""
        payload = json.dumps([self.version, self.place, self.region, self.mode, list(self.keywords)],
                             ensure_ascii=False, separators=(",", ":"))
        token = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")
        return DOC_PREFIX + token

    @classmethod
    def decode(cls, doc_id: str) -> "CacheKey":
        """Inverse of encode().

        Raises:
            ValueError: If doc_id was not produced by encode()
        """
        if isinstance(doc_id, (bytes, bytearray)):
            doc_id = doc_id.decode("utf-8")
        if not doc_id.startswith(DOC_PREFIX):
            raise ValueError(f"Not a video cache document id: {doc_id!r}")
        token = doc_id[len(DOC_PREFIX):]
        padded = token + "=" * (-len(token) % 4)
        fields = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
        if not isinstance(fields, list) or len(fields) != 5:
            raise ValueError(f"Malformed cache key payload: {fields!r}")
        version, place, region, mode, keywords = fields
        if not isinstance(version, int) or not isinstance(place, str) or not isinstance(region, str):
            raise ValueError(f"Malformed cache key fields: {fields!r}")
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise ValueError(f"Malformed cache key keywords: {keywords!r}")
        return cls(version=version, place=place, region=region,
                   mode=VideoMode(mode).value, keywords=tuple(keywords))


class CacheSource(Enum):
    """Which tier supplied a result."""
    MEMORY = "memory"
    PERSISTENT = "persistent"
    MISS = "miss"


@dataclass
class CacheLookup:
    videos: List[VideoResult]
    source: CacheSource


@dataclass
class MemoryCacheEntry:
    videos: Tuple[VideoResult, ...]
    expires_at: float
    hits: int = 0


class MemoryVideoCache:
    """Bounded in-process cache with TTL expiry and LFU eviction."""

    def __init__(self, capacity: int = 300, ttl_seconds: float = 6 * 3600,
                 clock: Callable[[], float] = time.time):
        if capacity < 1:
            raise ValueError(f"Invalid capacity: {capacity}")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, MemoryCacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[List[VideoResult]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return None
            entry.hits += 1
            return list(entry.videos)

    def set(self, key: str, videos: Sequence[VideoResult], ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._evict_locked(incoming=key)
            self._entries[key] = MemoryCacheEntry(videos=tuple(videos), expires_at=self._clock() + ttl)

    def evict_expired(self) -> int:
        with self._lock:
            return self._drop_expired_locked()

    def _drop_expired_locked(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now > e.expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def _evict_locked(self, incoming: str) -> None:
        self._drop_expired_locked()
        # min() keeps the first entry on ties, i.e. the oldest inserted
        while self._entries and incoming not in self._entries and len(self._entries) >= self.capacity:
            victim = min(self._entries, key=lambda k: self._entries[k].hits)
            logger.debug("Evicting %s (hits=%d)", victim, self._entries[victim].hits)
            del self._entries[victim]

    def hits(self, key: str) -> int:
        with self._lock:
            entry = self._entries.get(key)
            return entry.hits if entry else 0

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class PersistentVideoCache:
    """Redis-backed document cache: {videos, cachedAt, expiresAt} per key."""

    def __init__(self, redis_client, ttl_seconds: int = 7 * 86400, timeout: float = 5.0,
                 clock: Callable[[], float] = time.time, scan_batch: int = 100):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self._clock = clock
        self.scan_batch = scan_batch

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: CacheKey) -> Optional[List[VideoResult]]:
        """Return unexpired videos for key, or None on miss or backend failure."""
        doc_id = key.encode()
        try:
            raw = await asyncio.wait_for(self.redis.get(doc_id), timeout=self.timeout)
        except STORE_ERRORS as e:
            logger.warning("Persistent cache read failed for %s: %r", key.to_string(), e)
            return None
        if raw is None:
            return None
        try:
            doc = json.loads(raw)
            expires_at = int(doc["expiresAt"])
            videos = [VideoResult.from_dict(v) for v in doc["videos"]]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding malformed cache document %s: %r", key.to_string(), e)
            return None
        now = self._now_ms()
        if now > expires_at:
            logger.info("[persistent EXPIRED] %s", key.to_string())
            return None
        if not videos:
            return None
        logger.info("[persistent HIT] %s (expires in %dm)", key.to_string(), (expires_at - now) // 60000)
        return videos

    async def set(self, key: CacheKey, videos: Sequence[VideoResult]) -> bool:
        """Overwrite the document for key. Failures are logged, never raised."""
        now = self._now_ms()
        doc = {
            "videos": [v.to_dict(include_rating=False) for v in videos],
            "cachedAt": now,
            "expiresAt": now + self.ttl_seconds * 1000,
        }
        try:
            await asyncio.wait_for(
                self.redis.set(key.encode(), json.dumps(doc, ensure_ascii=False), ex=self.ttl_seconds),
                timeout=self.timeout,
            )
        except STORE_ERRORS as e:
            logger.error("Persistent cache write failed for %s: %r", key.to_string(), e)
            return False
        logger.info("[persistent SET] %s (%d videos)", key.to_string(), len(videos))
        return True

    async def iter_documents(self) -> AsyncIterator[Tuple[str, Optional[str]]]:
        """Yield (doc_id, raw_json) for every cached document.

        Used by the discovery pool rebuild only; backend errors propagate.
        """
        doc_ids = []
        async for doc_id in self.redis.scan_iter(match=DOC_PREFIX + "*", count=self.scan_batch):
            if isinstance(doc_id, (bytes, bytearray)):
                doc_id = doc_id.decode("utf-8")
            doc_ids.append(doc_id)
        for batch in chunked(doc_ids, self.scan_batch):
            values = await asyncio.wait_for(self.redis.mget(batch), timeout=self.timeout)
            for doc_id, raw in zip(batch, values):
                yield doc_id, raw


class TwoTierVideoCache:
    """Read-through / write-through coordination of both tiers.

    With single_flight on, concurrent misses for the same key share one
    fetch instead of each calling the provider.
    """

    def __init__(self, memory: MemoryVideoCache, persistent: Optional[PersistentVideoCache] = None,
                 single_flight: bool = True):
        self.memory = memory
        self.persistent = persistent
        self.single_flight = single_flight
        self._inflight: Dict[str, "asyncio.Future[List[VideoResult]]"] = {}

    async def lookup(self, key: CacheKey,
                     fetch: Callable[[], Awaitable[List[VideoResult]]]) -> CacheLookup:
        """Resolve key through memory, then Redis, then fetch().

        Raises:
            Whatever fetch() raises; cache failures are absorbed
        """
        doc_id = key.encode()
        videos = self.memory.get(doc_id)
        if videos is not None:
            logger.info("[memory HIT] %s", key.to_string())
            return CacheLookup(videos, CacheSource.MEMORY)

        if self.persistent is not None:
            videos = await self.persistent.get(key)
            if videos is not None:
                self.memory.set(doc_id, videos)
                return CacheLookup(videos, CacheSource.PERSISTENT)

        logger.info("[MISS] %s", key.to_string())
        if not self.single_flight:
            return CacheLookup(await self._fetch_and_store(key, fetch), CacheSource.MISS)

        future = self._inflight.get(doc_id)
        if future is None:
            future = asyncio.ensure_future(self._fetch_and_store(key, fetch))
            self._inflight[doc_id] = future
            future.add_done_callback(lambda f: self._fetch_done(doc_id, f))
        else:
            logger.info("Joining in-flight fetch for %s", key.to_string())
        videos = await asyncio.shield(future)
        return CacheLookup(list(videos), CacheSource.MISS)

    def _fetch_done(self, doc_id: str, future: "asyncio.Future[List[VideoResult]]") -> None:
        self._inflight.pop(doc_id, None)
        # Every waiter may have been cancelled; mark the error as retrieved
        if not future.cancelled():
            error = future.exception()
            if error is not None:
                logger.debug("Shared fetch for %s failed: %r", doc_id, error)

    async def _fetch_and_store(self, key: CacheKey,
                               fetch: Callable[[], Awaitable[List[VideoResult]]]) -> List[VideoResult]:
        videos = await fetch()
        if not videos:
            logger.info("Not caching empty result for %s", key.to_string())
            return []
        if self.persistent is not None:
            await self.persistent.set(key, videos)
        self.memory.set(key.encode(), videos)
        return videos

    def inflight_count(self) -> int:
        return len(self._inflight)
