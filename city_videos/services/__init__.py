"""
Video pipeline services: query building, filtering, orchestration, caching and ratings.
"""
