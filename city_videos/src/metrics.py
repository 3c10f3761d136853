"""
Lightweight async metrics: Redis counters and latency samples.

- Counters: INCRBY on `metrics:counter:{name}`
- Latency samples: LPUSH to `metrics:lat:{name}`, LTRIM to the last max_samples
- Without Redis (or when it fails) values are kept in process.
"""

from typing import Dict, Any, List
import logging
import statistics

from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

COUNTER_PREFIX = "metrics:counter:"
LATENCY_PREFIX = "metrics:lat:"

_MEM_COUNTERS: Dict[str, int] = {}
_MEM_LATS: Dict[str, List[float]] = {}


async def _get_redis():
    # Imported lazily, app imports routes which import this module
    from city_videos.src.app import redis_client
    return redis_client


def _name(key) -> str:
    if isinstance(key, (bytes, bytearray)):
        key = key.decode()
    return key.split(':', 2)[-1]


def _summary(samples: List[float]) -> Dict[str, float]:
    return {
        'count': len(samples),
        'avg_ms': sum(samples) / len(samples),
        'p50_ms': float(statistics.median(samples)),
    }


def _remember_latency(name: str, ms: float, max_samples: int) -> None:
    samples = _MEM_LATS.setdefault(name, [])
    samples.insert(0, ms)
    del samples[max_samples:]


async def increment(name: str, amount: int = 1) -> None:
    """Increment a named counter by amount"""
    rc = await _get_redis()
    if rc is not None:
        try:
            await rc.incrby(COUNTER_PREFIX + name, amount)
            return
        except (RedisError, OSError) as e:
            logger.debug("metrics increment fell back to memory: %r", e)
    _MEM_COUNTERS[name] = _MEM_COUNTERS.get(name, 0) + amount


async def observe_latency(name: str, ms: float, max_samples: int = 1000) -> None:
    """Record a latency sample (milliseconds) for a named metric"""
    rc = await _get_redis()
    if rc is not None:
        try:
            key = LATENCY_PREFIX + name
            await rc.lpush(key, str(ms))
            await rc.ltrim(key, 0, max_samples - 1)
            return
        except (RedisError, OSError) as e:
            logger.debug("metrics latency fell back to memory: %r", e)
    _remember_latency(name, ms, max_samples)


async def get_metrics() -> Dict[str, Any]:
    """Return counters and latency summaries, merging Redis and in-process values."""
    counters: Dict[str, int] = dict(_MEM_COUNTERS)
    samples: Dict[str, List[float]] = {n: list(v) for n, v in _MEM_LATS.items()}

    rc = await _get_redis()
    if rc is not None:
        try:
            async for key in rc.scan_iter(match=COUNTER_PREFIX + '*'):
                value = await rc.get(key)
                name = _name(key)
                counters[name] = counters.get(name, 0) + (int(value) if value is not None else 0)
            async for key in rc.scan_iter(match=LATENCY_PREFIX + '*'):
                values = await rc.lrange(key, 0, -1)
                samples.setdefault(_name(key), []).extend(float(v) for v in values)
        except (RedisError, OSError) as e:
            logger.warning("Reading metrics from Redis failed: %r", e)

    return {
        'counters': counters,
        'latencies': {n: _summary(v) for n, v in samples.items() if v},
    }
