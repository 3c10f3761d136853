"""
City videos Quart app: lifecycle of the shared HTTP session, Redis client
and video service, plus blueprint registration.
"""

from quart import Quart
from quart_cors import cors
import aiohttp
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from city_videos.config import get_config, setup_logging
from city_videos.services.session_manager import session_manager
from city_videos.services.video_service import VideoService, build_video_service
from .routes import register_blueprints

config = get_config()
setup_logging()

app = Quart(__name__)
app = cors(app, allow_origin=config.cors_origins, allow_methods=["GET", "POST", "OPTIONS"])

# Global async clients, created in startup()
aiohttp_session: aiohttp.ClientSession | None = None
redis_client: aioredis.Redis | None = None
video_service: VideoService | None = None

register_blueprints(app)


async def _connect_redis() -> aioredis.Redis | None:
    if not config.redis_url:
        app.logger.warning("REDIS_URL not set; running without persistent cache and ratings")
        return None
    rc = config.redis_config
    client = aioredis.from_url(
        rc.url,
        decode_responses=True,
        max_connections=rc.max_connections,
        socket_timeout=rc.socket_timeout,
        socket_connect_timeout=rc.socket_connect_timeout,
        health_check_interval=rc.health_check_interval,
    )
    try:
        await client.ping()
    except (RedisError, OSError):
        app.logger.warning("Redis not available; running without persistent cache and ratings")
        await client.aclose()
        return None
    app.logger.info("Redis connected")
    return client


@app.before_serving
async def startup():
    global aiohttp_session, redis_client, video_service
    aiohttp_session = await session_manager.get_session()
    redis_client = await _connect_redis()
    video_service = build_video_service(config, aiohttp_session, redis_client)
    app.logger.info("Video service ready: %s", config.to_dict())


@app.after_serving
async def shutdown():
    global aiohttp_session, redis_client, video_service
    video_service = None
    await session_manager.close()
    aiohttp_session = None
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


def run():
    """Development server entry point (`city-videos` console script)."""
    app.run(host="0.0.0.0", port=config.port, debug=config.debug)
