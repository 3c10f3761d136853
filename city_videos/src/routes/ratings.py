"""
Rating submission route.
"""
from quart import Blueprint, request, jsonify

from city_videos.providers.base import ConfigurationError
from city_videos.services.video_cache import STORE_ERRORS
from city_videos.src.metrics import increment

bp = Blueprint('ratings', __name__)


@bp.route('/api/rate', methods=['POST'])
async def rate_video():
    """Record a good/bad vote. Body: {"videoId": str, "isGood": bool}"""
    from city_videos.src.app import app, video_service

    body = await request.get_json(silent=True) or {}
    video_id = body.get('videoId')
    is_good = body.get('isGood')
    if not isinstance(video_id, str) or not video_id.strip() or not isinstance(is_good, bool):
        return jsonify({'error': 'Invalid request body'}), 400

    if video_service is None:
        return jsonify({'error': 'ratings_unavailable'}), 503
    try:
        await video_service.rate(video_id.strip(), is_good)
    except ConfigurationError:
        return jsonify({'error': 'ratings_unavailable'}), 503
    except STORE_ERRORS as e:
        app.logger.error('Failed to rate video %s: %r', video_id, e)
        return jsonify({'error': 'Internal server error'}), 500

    await increment('ratings.recorded')
    return jsonify({'success': True})


def register(app):
    """Register ratings blueprint with app"""
    app.register_blueprint(bp)
