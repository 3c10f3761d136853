"""
Random discovery route, served from the global pool.
"""
from quart import Blueprint, request, jsonify

from city_videos.models import VideoMode
from .videos import parse_count, serialize_video

bp = Blueprint('discovery', __name__)


@bp.route('/api/random', methods=['GET'])
async def random_videos():
    from city_videos.src.app import app, video_service

    count = parse_count(request.args.get('count'), default=10)
    mode = VideoMode.parse(request.args.get('mode') or VideoMode.SCENIC.value)

    if video_service is None:
        return jsonify({'videos': []})
    try:
        videos = await video_service.random(mode, count)
    except Exception:
        app.logger.exception('Random discovery failed')
        return jsonify({'error': 'Failed to fetch random videos'}), 500
    return jsonify({'videos': [serialize_video(v) for v in videos]})


def register(app):
    """Register discovery blueprint with app"""
    app.register_blueprint(bp)
