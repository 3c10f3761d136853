"""
YouTube Data API v3 search client.

One search() call costs one search.list request plus one videos.list
request per 50 candidates. Quota and authorization refusals surface as
QuotaExceededError so callers can stop spending quota immediately.
"""
import asyncio
import logging
from typing import Optional, List, Dict, Any, Tuple

import aiohttp

from city_videos.config import SearchConfig, TimeoutConfig
from city_videos.models import RawCandidate
from city_videos.utils.formatting import parse_iso8601_duration
from .base import (
    VideoSearchProvider,
    ConfigurationError,
    QuotaExceededError,
    TransientProviderError,
)
from .utils import chunked, language_for_region

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"

QUOTA_STATUSES = {401, 403, 429}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _items(data: Dict[str, Any], endpoint: str) -> List[Dict[str, Any]]:
    """Return the dict entries of a response's items list.

    Raises:
        TransientProviderError: If items is present but not a list
    """
    items = data.get("items") or []
    if not isinstance(items, list):
        raise TransientProviderError(f"Malformed YouTube {endpoint} items: {type(items).__name__}")
    return [item for item in items if isinstance(item, dict)]


def _best_thumbnail(thumbnails: Dict[str, Any]) -> str:
    for key in ("high", "medium", "default"):
        url = _as_dict(thumbnails.get(key)).get("url")
        if url and isinstance(url, str):
            return url
    return ""


def _error_reason(payload: Any) -> str:
    """Pull the first error reason out of a Google API error body."""
    try:
        errors = payload["error"].get("errors") or []
        if errors:
            return errors[0].get("reason") or ""
        return payload["error"].get("status") or ""
    except (KeyError, TypeError, AttributeError):
        return ""


class YouTubeSearchClient(VideoSearchProvider):
    """Search client for embeddable YouTube videos."""

    name = "youtube"

    def __init__(self, api_key: Optional[str], session: aiohttp.ClientSession,
                 search_config: Optional[SearchConfig] = None,
                 timeout_config: Optional[TimeoutConfig] = None,
                 base_url: str = YOUTUBE_API_BASE):
        super().__init__()
        if not api_key:
            raise ConfigurationError("YouTube API key is not configured")
        self.api_key = api_key
        self.session = session
        self.search_config = search_config or SearchConfig()
        self.timeout_config = timeout_config or TimeoutConfig()
        self.base_url = base_url.rstrip("/")

    async def _get_json(self, endpoint: str, params: Dict[str, str], timeout: float) -> Dict[str, Any]:
        """GET an API endpoint and return the decoded JSON body.

        Raises:
            QuotaExceededError: On 401/403/429
            TransientProviderError: On any other failure
        """
        url = f"{self.base_url}/{endpoint}"
        query = dict(params, key=self.api_key)
        try:
            async with self.session.get(url, params=query,
                                        timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
                if resp.status in QUOTA_STATUSES:
                    try:
                        body = await resp.json(content_type=None)
                    except ValueError:
                        body = None
                    reason = _error_reason(body) or "forbidden"
                    raise QuotaExceededError(
                        f"YouTube {endpoint} refused with {resp.status} ({reason})",
                        status=resp.status,
                    )
                if resp.status != 200:
                    raise TransientProviderError(
                        f"YouTube {endpoint} error: {resp.status}", status=resp.status
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise TransientProviderError(f"Malformed YouTube {endpoint} response: {e}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientProviderError(f"YouTube {endpoint} request failed: {e!r}")
        if not isinstance(data, dict):
            raise TransientProviderError(f"Unexpected YouTube {endpoint} payload type: {type(data).__name__}")
        return data

    async def _search_items(self, query: str, region: Optional[str], max_results: int) -> List[Dict[str, Any]]:
        params = {
            "part": "snippet",
            "q": query,
            "type": "video",
            "videoEmbeddable": "true",
            "order": "relevance",
            "maxResults": str(max_results),
        }
        if region:
            params["regionCode"] = region.upper()
            params["relevanceLanguage"] = language_for_region(region)
        data = await self._get_json("search", params, self.timeout_config.youtube_search)

        seen = set()
        items = []
        for item in _items(data, "search"):
            video_id = _as_dict(item.get("id")).get("videoId")
            if not video_id or not isinstance(video_id, str) or video_id in seen:
                continue
            seen.add(video_id)
            items.append(item)
        return items

    async def _fetch_details(self, video_ids: List[str]) -> Dict[str, Tuple[str, int]]:
        """Batch fetch (viewCount, durationSeconds) for each id.

        A transient failure drops that chunk only; quota errors propagate.
        """
        details: Dict[str, Tuple[str, int]] = {}
        for batch in chunked(video_ids, self.search_config.details_batch_size):
            params = {"part": "statistics,contentDetails", "id": ",".join(batch)}
            try:
                data = await self._get_json("videos", params, self.timeout_config.youtube_details)
                items = _items(data, "videos")
            except TransientProviderError as e:
                logger.warning("Dropping %d candidates after details failure: %s", len(batch), e)
                continue
            for item in items:
                vid = item.get("id")
                if not vid or not isinstance(vid, str):
                    continue
                statistics = _as_dict(item.get("statistics"))
                content = _as_dict(item.get("contentDetails"))
                details[vid] = (
                    str(statistics.get("viewCount") or "0"),
                    parse_iso8601_duration(content.get("duration") or ""),
                )
        return details

    async def search(self, query: str, region: Optional[str] = None,
                     max_results: Optional[int] = None) -> List[RawCandidate]:
        max_results = max_results or self.search_config.max_results
        items = await self._search_items(query, region, max_results)
        if not items:
            logger.info("YouTube search %r returned no items", query)
            return []

        details = await self._fetch_details([item["id"]["videoId"] for item in items])

        candidates = []
        for item in items:
            vid = item["id"]["videoId"]
            if vid not in details:
                continue
            view_count, duration = details[vid]
            snippet = _as_dict(item.get("snippet"))
            candidates.append(RawCandidate(
                video_id=vid,
                title=snippet.get("title") or "",
                description=snippet.get("description") or "",
                channel_title=snippet.get("channelTitle") or "",
                channel_id=snippet.get("channelId") or "",
                thumbnail=_best_thumbnail(_as_dict(snippet.get("thumbnails"))),
                published_at=snippet.get("publishedAt") or "",
                view_count=view_count,
                duration_seconds=duration,
            ))
        logger.debug("YouTube search %r: %d items, %d with details", query, len(items), len(candidates))
        return candidates
