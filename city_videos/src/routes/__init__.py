"""
Routes package for the city videos API
Blueprint-based modular route organization
"""


def register_blueprints(app):
    """
    Register all route blueprints with the Quart app
    """
    from .admin import register as register_admin
    from .videos import register as register_videos
    from .ratings import register as register_ratings
    from .discovery import register as register_discovery

    register_admin(app)
    register_videos(app)
    register_ratings(app)
    register_discovery(app)
