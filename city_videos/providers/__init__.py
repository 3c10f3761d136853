"""
Video search providers.
"""
