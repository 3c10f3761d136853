"""
Pytest configuration for city videos tests.

Environment is set before any city_videos module is imported, because the
configuration is read at import time.
"""
import os

os.environ["ENVIRONMENT"] = "testing"
os.environ["REDIS_URL"] = ""

import pytest


class FakePipeline:
    """Buffers commands and applies them with no await in between, like MULTI/EXEC."""

    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.commands = []
        return False

    def hincrby(self, key, field, amount):
        self.commands.append(('hincrby', key, field, amount))
        return self

    def hgetall(self, key):
        self.commands.append(('hgetall', key))
        return self

    async def execute(self):
        self.redis.check()
        results = []
        for name, *args in self.commands:
            results.append(getattr(self.redis, '_' + name)(*args))
        self.commands = []
        return results


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.hashes = {}
        self.expiry = {}
        self.fail = False
        self.pipelines = 0

    def check(self):
        if self.fail:
            raise ConnectionError("redis down")

    async def ping(self):
        self.check()
        return True

    async def get(self, key):
        self.check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.check()
        self.store[key] = value
        self.expiry[key] = ex

    async def mget(self, keys):
        self.check()
        return [self.store.get(k) for k in keys]

    async def scan_iter(self, match=None, count=None):
        self.check()
        prefix = (match or '').rstrip('*')
        for key in list(self.store):
            if key.startswith(prefix):
                yield key

    def pipeline(self, transaction=True):
        self.check()
        self.pipelines += 1
        return FakePipeline(self)

    def _hincrby(self, key, field, amount):
        record = self.hashes.setdefault(key, {})
        record[field] = record.get(field, 0) + amount
        return record[field]

    def _hgetall(self, key):
        return {k: str(v) for k, v in self.hashes.get(key, {}).items()}


class FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self._payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self, content_type=None):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def make_video(title, views=50000, duration="PT15M", description="", details=True):
    return {
        'title': title,
        'description': description,
        'views': views,
        'duration': duration,
        'details': details,
    }


class FakeYouTube:
    """Stands in for the aiohttp session used by YouTubeSearchClient."""

    def __init__(self, videos=None):
        self.videos = dict(videos or {})
        self.calls = []
        self.search_status = 200
        self.search_body = None
        self.details_status = 200

    def get(self, url, params=None, timeout=None):
        params = dict(params or {})
        endpoint = url.rsplit('/', 1)[-1]
        self.calls.append((endpoint, params))
        if endpoint == 'search':
            if self.search_status != 200:
                return FakeResponse(self.search_status, self.search_body)
            items = [{
                'id': {'kind': 'youtube#video', 'videoId': vid},
                'snippet': {
                    'title': v['title'],
                    'description': v['description'],
                    'channelTitle': f"channel-{vid}",
                    'channelId': f"UC{vid}",
                    'publishedAt': '2024-05-01T00:00:00Z',
                    'thumbnails': {'high': {'url': f"https://i.ytimg.com/vi/{vid}/hqdefault.jpg"}},
                },
            } for vid, v in self.videos.items()]
            return FakeResponse(200, {'items': items})
        if self.details_status != 200:
            return FakeResponse(self.details_status, {'error': {'code': self.details_status}})
        ids = params['id'].split(',')
        items = [{
            'id': vid,
            'statistics': {'viewCount': str(self.videos[vid]['views'])},
            'contentDetails': {'duration': self.videos[vid]['duration']},
        } for vid in ids if vid in self.videos and self.videos[vid]['details']]
        return FakeResponse(200, {'items': items})

    def endpoint_calls(self, endpoint):
        return [params for name, params in self.calls if name == endpoint]


QUOTA_BODY = {
    'error': {
        'code': 403,
        'message': 'The request cannot be completed because you have exceeded your quota.',
        'errors': [{'reason': 'quotaExceeded', 'domain': 'youtube.quota'}],
    }
}


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def kyoto_videos():
    """Twelve long, popular videos; the even ones mention Kyoto in the title."""
    videos = {}
    for i in range(12):
        if i % 2 == 0:
            videos[f"kyoto{i:02d}"] = make_video(f"Kyoto Walking Tour part {i}", views=50000 + i)
        else:
            videos[f"other{i:02d}"] = make_video(f"Osaka Street Walk part {i}", views=50000 + i,
                                                 description="Exploring the city")
    return videos
