"""
Data model shared by the search, cache and rating layers.

Videos are serialized with the camelCase field names the map frontend
already consumes.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Dict, Any

from city_videos.utils.formatting import parse_view_count


class VideoMode(Enum):
    """Kind of footage requested for a place."""
    VLOG = "vlog"
    CAMP = "camp"
    SCENIC = "scenic"

    @classmethod
    def parse(cls, value: Optional[str]) -> "VideoMode":
        """Parse a mode tag, falling back to vlog for unknown values."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.VLOG


@dataclass(frozen=True)
class Rating:
    """Community rating overlay attached at read time."""
    likes: int = 0
    dislikes: int = 0
    score: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"likes": self.likes, "dislikes": self.dislikes, "score": self.score}


@dataclass(frozen=True)
class RawCandidate:
    """A search snippet merged with its statistics/contentDetails record."""
    video_id: str
    title: str
    description: str
    channel_title: str
    channel_id: str
    thumbnail: str
    published_at: str
    view_count: str
    duration_seconds: int

    @property
    def views(self) -> int:
        return parse_view_count(self.view_count)


@dataclass(frozen=True)
class VideoResult:
    """One accepted video. Immutable; ratings are added with with_rating()."""
    id: str
    title: str
    channel_title: str
    channel_id: str
    thumbnail: str
    view_count: str
    published_at: str
    duration_seconds: int
    rating: Optional[Rating] = None

    @classmethod
    def from_candidate(cls, candidate: RawCandidate) -> "VideoResult":
        return cls(
            id=candidate.video_id,
            title=candidate.title,
            channel_title=candidate.channel_title,
            channel_id=candidate.channel_id,
            thumbnail=candidate.thumbnail,
            view_count=candidate.view_count,
            published_at=candidate.published_at,
            duration_seconds=max(0, int(candidate.duration_seconds)),
        )

    def with_rating(self, rating: Rating) -> "VideoResult":
        return replace(self, rating=rating)

    def to_dict(self, include_rating: bool = True) -> Dict[str, Any]:
        """Serialize to the camelCase document shape.

        Args:
            include_rating: False for the persisted form, which never
                carries the rating overlay

        Returns:
            JSON-serializable dictionary
        """
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "channelTitle": self.channel_title,
            "channelId": self.channel_id,
            "thumbnail": self.thumbnail,
            "viewCount": self.view_count,
            "publishedAt": self.published_at,
            "durationSeconds": self.duration_seconds,
        }
        if include_rating and self.rating is not None:
            data["ratings"] = self.rating.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoResult":
        """Rebuild a video from its persisted form.

        Raises:
            KeyError: If the id is missing
            ValueError: If the duration is not an integer
        """
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            channel_title=str(data.get("channelTitle") or ""),
            channel_id=str(data.get("channelId") or ""),
            thumbnail=str(data.get("thumbnail") or ""),
            view_count=str(data.get("viewCount") or "0"),
            published_at=str(data.get("publishedAt") or ""),
            duration_seconds=max(0, int(data.get("durationSeconds") or 0)),
        )
