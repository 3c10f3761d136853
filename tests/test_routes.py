import json

import pytest

from city_videos.config import Config
from city_videos.providers.youtube_provider import YouTubeSearchClient
from city_videos.services.video_service import build_video_service
from city_videos.src import app as appmod
from city_videos.src.routes.videos import parse_count, parse_local_keywords

from conftest import FakeYouTube, QUOTA_BODY

app = appmod.app


def install_service(monkeypatch, session=None, redis=None):
    config = Config()
    provider = None
    if session is not None:
        provider = YouTubeSearchClient("test-key", session, search_config=config.search_config)
    service = build_video_service(config, session, redis, provider=provider)
    monkeypatch.setattr(appmod, 'video_service', service)
    monkeypatch.setattr(appmod, 'redis_client', None)
    return service


def test_parse_local_keywords():
    assert parse_local_keywords('["京都 散歩 vlog", " ", 3]') == ["京都 散歩 vlog"]
    assert parse_local_keywords('"solo"') == ["solo"]
    assert parse_local_keywords('not json') == []
    assert parse_local_keywords('{"a": 1}') == []
    assert parse_local_keywords(None) == []


@pytest.mark.parametrize("raw,expected", [(None, 8), ("3", 3), ("0", 1), ("500", 50), ("abc", 8)])
def test_parse_count(raw, expected):
    assert parse_count(raw) == expected


@pytest.mark.asyncio
async def test_youtube_search_returns_videos(monkeypatch, fake_redis, kyoto_videos):
    session = FakeYouTube(kyoto_videos)
    install_service(monkeypatch, session, fake_redis)

    async with app.test_client() as client:
        resp = await client.get('/api/youtube', query_string={
            'q': 'Kyoto',
            'regionCode': 'jp',
            'localKeywords': json.dumps(['京都 散歩 vlog']),
            'maxResults': '4',
        })
        assert resp.status_code == 200
        data = await resp.get_json()
        assert data['source'] == 'miss'
        assert data['count'] == 4
        first = data['videos'][0]
        assert first['id'].startswith('kyoto')
        assert first['durationSeconds'] == 900
        assert first['durationLabel'] == '15:00'
        assert first['viewCountLabel'].endswith('K')
        assert first['ratings'] == {'likes': 0, 'dislikes': 0, 'score': 0}

        resp = await client.get('/api/youtube', query_string={'q': 'Kyoto', 'regionCode': 'JP',
                                                                'localKeywords': json.dumps(['京都 散歩 vlog'])})
        assert (await resp.get_json())['source'] == 'memory'

    assert session.endpoint_calls('search')[0]['regionCode'] == 'JP'


@pytest.mark.asyncio
async def test_camp_mode_alias(monkeypatch, fake_redis):
    session = FakeYouTube({})
    install_service(monkeypatch, session, fake_redis)

    async with app.test_client() as client:
        resp = await client.get('/api/youtube', query_string={'q': 'Hokkaido', 'isCampMode': 'true'})
        assert resp.status_code == 200
    assert 'camping' in session.endpoint_calls('search')[0]['q']


@pytest.mark.asyncio
async def test_youtube_search_requires_query(monkeypatch, fake_redis):
    install_service(monkeypatch, FakeYouTube({}), fake_redis)
    async with app.test_client() as client:
        resp = await client.get('/api/youtube', query_string={'q': '  '})
        assert resp.status_code == 400


@pytest.mark.asyncio
async def test_quota_exhaustion_maps_to_429(monkeypatch, fake_redis, kyoto_videos):
    session = FakeYouTube(kyoto_videos)
    session.search_status = 403
    session.search_body = QUOTA_BODY
    install_service(monkeypatch, session, fake_redis)

    async with app.test_client() as client:
        resp = await client.get('/api/youtube', query_string={'q': 'Kyoto'})
        assert resp.status_code == 429
        assert (await resp.get_json())['error'] == 'quota_exceeded'


@pytest.mark.asyncio
async def test_missing_api_key_maps_to_500(monkeypatch, fake_redis):
    install_service(monkeypatch, None, fake_redis)
    async with app.test_client() as client:
        resp = await client.get('/api/youtube', query_string={'q': 'Kyoto'})
        assert resp.status_code == 500
        assert (await resp.get_json())['error'] == 'not_configured'


@pytest.mark.asyncio
async def test_unexpected_failure_maps_to_500(monkeypatch, fake_redis):
    service = install_service(monkeypatch, FakeYouTube({}), fake_redis)

    async def boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(service, 'query', boom)
    async with app.test_client() as client:
        resp = await client.get('/api/youtube', query_string={'q': 'Kyoto'})
        assert resp.status_code == 500
        assert (await resp.get_json())['error'] == 'search_failed'


@pytest.mark.asyncio
async def test_rate_records_vote(monkeypatch, fake_redis):
    install_service(monkeypatch, FakeYouTube({}), fake_redis)

    async with app.test_client() as client:
        resp = await client.post('/api/rate', json={'videoId': 'abc', 'isGood': True})
        assert resp.status_code == 200
        assert (await resp.get_json()) == {'success': True}

    assert fake_redis.hashes['video_rating:abc'] == {'likes': 1, 'dislikes': 0}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {'videoId': 'abc'}, {'videoId': '', 'isGood': True},
                                  {'videoId': 'abc', 'isGood': 'yes'}])
async def test_rate_rejects_invalid_body(monkeypatch, fake_redis, body):
    install_service(monkeypatch, FakeYouTube({}), fake_redis)
    async with app.test_client() as client:
        resp = await client.post('/api/rate', json=body)
        assert resp.status_code == 400


@pytest.mark.asyncio
async def test_rate_store_failure_maps_to_500(monkeypatch, fake_redis):
    install_service(monkeypatch, FakeYouTube({}), fake_redis)
    fake_redis.fail = True
    async with app.test_client() as client:
        resp = await client.post('/api/rate', json={'videoId': 'abc', 'isGood': False})
        assert resp.status_code == 500


@pytest.mark.asyncio
async def test_rate_without_redis_is_unavailable(monkeypatch):
    install_service(monkeypatch, FakeYouTube({}), None)
    async with app.test_client() as client:
        resp = await client.post('/api/rate', json={'videoId': 'abc', 'isGood': True})
        assert resp.status_code == 503


@pytest.mark.asyncio
async def test_random_returns_pooled_videos(monkeypatch, fake_redis, kyoto_videos):
    service = install_service(monkeypatch, FakeYouTube(kyoto_videos), fake_redis)
    await service.query("Kyoto", "scenic", "JP")

    async with app.test_client() as client:
        resp = await client.get('/api/random', query_string={'count': '2'})
        assert resp.status_code == 200
        videos = (await resp.get_json())['videos']
        assert len(videos) == 2
        assert all('ratings' in v for v in videos)

        resp = await client.get('/api/random', query_string={'mode': 'camp'})
        assert (await resp.get_json()) == {'videos': []}


@pytest.mark.asyncio
async def test_random_before_startup_is_empty(monkeypatch):
    monkeypatch.setattr(appmod, 'video_service', None)
    async with app.test_client() as client:
        resp = await client.get('/api/random')
        assert resp.status_code == 200
        assert (await resp.get_json()) == {'videos': []}


@pytest.mark.asyncio
async def test_healthz(monkeypatch, fake_redis, kyoto_videos):
    service = install_service(monkeypatch, FakeYouTube(kyoto_videos), fake_redis)
    await service.query("Kyoto", "vlog", "JP")

    async with app.test_client() as client:
        resp = await client.get('/healthz')
        assert resp.status_code == 200
        data = await resp.get_json()
        assert data['app'] == 'ok'
        assert data['ready'] is True
        assert data['memory_cache_entries'] == 1
        assert data['random_pool'] == {}
