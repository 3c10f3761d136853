"""
Parsers and formatters for YouTube duration and view-count encodings.

All functions are pure and never raise on malformed input.
"""

import re
from typing import Optional, Union

# Livestreams longer than a day come back as P1DT2H3M4S
_ISO_DURATION = re.compile(r"P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?")


def parse_iso8601_duration(duration: Optional[str]) -> int:
    """Convert an ISO 8601 duration such as ``PT1H2M3S`` to whole seconds.

    Absent components count as zero; anything unparseable yields 0.
    """
    if not duration or not isinstance(duration, str):
        return 0
    match = _ISO_DURATION.match(duration.strip().upper())
    if not match:
        return 0
    days, hours, minutes, seconds = (int(g or 0) for g in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def parse_view_count(value: Union[str, int, None]) -> int:
    """Parse the provider's numeric view-count string, 0 on failure."""
    if value is None:
        return 0
    try:
        return max(0, int(str(value).strip()))
    except ValueError:
        return 0


def format_view_count(count: Union[str, int, None]) -> str:
    """Short human label: 12.3K, 1.2M, or the plain integer."""
    n = parse_view_count(count)
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def format_duration(seconds: Union[int, float, None]) -> str:
    """Format seconds as H:MM:SS, or M:SS when under an hour."""
    try:
        total = max(0, int(seconds or 0))
    except (TypeError, ValueError):
        total = 0
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"
