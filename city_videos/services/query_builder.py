"""
Tiered search query construction.

Tier 1 is the most specific phrasing for the mode; tier 2 is a broader
fallback for places without dedicated content. The orchestrator tries them
in order and stops as soon as it has enough results.
"""
from typing import List, Optional, Sequence, Union

from city_videos.models import VideoMode

MODE_TIERS = {
    VideoMode.CAMP: ("solo camping bushcraft outdoor", "camping travel"),
    VideoMode.SCENIC: ("drone aerial 4K", "scenic cinematic travel"),
    VideoMode.VLOG: ("walking tour 4K", "travel vlog walk"),
}


def _clean(text: str) -> str:
    return " ".join(text.split())


def build_queries(place: str, mode: Union[VideoMode, str, None] = VideoMode.VLOG,
                  region: Optional[str] = None,
                  local_keywords: Optional[Sequence[str]] = None) -> List[str]:
    """Build the ordered list of query strings for a place.

    Args:
        place: Place name, required
        mode: Video mode or its tag; unknown tags mean vlog
        region: Region code; results are scoped by the client, not the query
        local_keywords: Local-language phrases, first one is used for vlog

    Returns:
        Non-empty list of distinct query strings, most specific first

    Raises:
        ValueError: If place is empty
    """
    place = _clean(place or "")
    if not place:
        raise ValueError("place is required")
    if not isinstance(mode, VideoMode):
        mode = VideoMode.parse(mode)

    specific, broad = MODE_TIERS[mode]
    keywords = [_clean(k) for k in (local_keywords or []) if k and _clean(k)]

    first = f"{place} {specific}"
    if mode is VideoMode.VLOG and keywords:
        first = f"{first} {keywords[0]}"

    queries = []
    for query in (first, f"{place} {broad}"):
        if query not in queries:
            queries.append(query)
    return queries
