"""
City videos: place-based travel video search with two-tier caching.
"""
