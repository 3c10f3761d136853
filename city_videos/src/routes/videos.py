"""
Video search route: the single query operation the map UI calls.
"""
import json
import time
from typing import List

from quart import Blueprint, request, jsonify

from city_videos.models import VideoMode, VideoResult
from city_videos.providers.base import ConfigurationError, QuotaExceededError
from city_videos.src.metrics import increment, observe_latency
from city_videos.utils.formatting import format_duration, format_view_count

bp = Blueprint('videos', __name__)

DEFAULT_MAX_RESULTS = 8
MAX_RESULTS_LIMIT = 50

SOURCE_COUNTERS = {
    'memory': 'cache.memory_hit',
    'persistent': 'cache.persistent_hit',
    'miss': 'cache.miss',
}


def parse_local_keywords(raw: str | None) -> List[str]:
    """Parse the localKeywords JSON array parameter; bad input means none."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError:
        return []
    if isinstance(data, str):
        data = [data]
    if not isinstance(data, list):
        return []
    return [k.strip() for k in data if isinstance(k, str) and k.strip()]


def parse_count(raw, default: int = DEFAULT_MAX_RESULTS, upper: int = MAX_RESULTS_LIMIT) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, upper))


def serialize_video(video: VideoResult) -> dict:
    data = video.to_dict()
    data['viewCountLabel'] = format_view_count(video.view_count)
    data['durationLabel'] = format_duration(video.duration_seconds)
    return data


@bp.route('/api/youtube', methods=['GET'])
async def youtube_search():
    """Search videos for a place.

    Query params: q, mode (vlog|camp|scenic), regionCode, localKeywords
    (JSON array), maxResults. isCampMode=true is accepted for mode=camp.
    """
    from city_videos.src.app import app, video_service

    args = request.args
    place = (args.get('q') or '').strip()
    if not place:
        return jsonify({'error': 'Query parameter "q" is required'}), 400

    mode_tag = args.get('mode')
    if not mode_tag and args.get('isCampMode') == 'true':
        mode_tag = VideoMode.CAMP.value
    mode = VideoMode.parse(mode_tag)
    region = (args.get('regionCode') or '').strip().upper() or None
    keywords = parse_local_keywords(args.get('localKeywords'))
    count = parse_count(args.get('maxResults'))

    if video_service is None:
        app.logger.error('Video service not initialised')
        return jsonify({'error': 'not_configured', 'message': 'Video search is not configured'}), 500

    started = time.monotonic()
    try:
        result = await video_service.query(place, mode, region, keywords, count)
    except QuotaExceededError as e:
        app.logger.warning('YouTube quota exhausted for %r: %s', place, e)
        await increment('youtube.quota_exceeded')
        return jsonify({
            'error': 'quota_exceeded',
            'message': 'Video search is temporarily unavailable. Please try again later.',
        }), 429
    except ConfigurationError as e:
        app.logger.error('Video search misconfigured: %s', e)
        return jsonify({'error': 'not_configured', 'message': 'Video search is not configured'}), 500
    except Exception:
        app.logger.exception('Video search failed for %r', place)
        await increment('youtube.search_failed')
        return jsonify({'error': 'search_failed', 'message': 'Failed to fetch videos'}), 500

    await increment(SOURCE_COUNTERS[result.source.value])
    await observe_latency('videos.query', (time.monotonic() - started) * 1000)
    return jsonify({
        'videos': [serialize_video(v) for v in result.videos],
        'source': result.source.value,
        'count': len(result.videos),
    })


def register(app):
    """Register videos blueprint with app"""
    app.register_blueprint(bp)
