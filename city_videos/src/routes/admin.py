"""
Admin routes: health check and metrics
"""
import time
from quart import Blueprint, jsonify

from city_videos.src.metrics import get_metrics as get_metrics_dict

bp = Blueprint('admin', __name__)


@bp.route('/healthz')
async def healthz():
    """Lightweight health endpoint returning component status."""
    from city_videos.src.app import aiohttp_session, redis_client, video_service, config

    status = {
        'app': 'ok',
        'time': time.time(),
        'ready': video_service is not None,
        'session': bool(aiohttp_session is not None and not aiohttp_session.closed),
        'redis': redis_client is not None,
        'youtube': bool(config.youtube_api_key),
    }
    if video_service is not None:
        status['memory_cache_entries'] = len(video_service.cache.memory)
        status['random_pool'] = video_service.pool.snapshot()
    return jsonify(status)


@bp.route('/metrics/json')
async def metrics_json():
    """Return simple JSON metrics (counters and latency summaries)"""
    metrics = await get_metrics_dict()
    return jsonify(metrics)


def register(app):
    """Register admin blueprint with app"""
    app.register_blueprint(bp)
