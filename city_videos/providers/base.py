"""
Provider base interfaces and error types.

The orchestrator depends only on VideoSearchProvider, so tests and
alternative backends can stand in for the YouTube client.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
import logging

from city_videos.models import RawCandidate


class ConfigurationError(Exception):
    """A required setting (such as the API key) is missing or invalid."""


class ProviderError(Exception):
    """Base class for failures reported by an external provider."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class QuotaExceededError(ProviderError):
    """The provider refused the call for quota, rate-limit or auth reasons.

    Never retried: further calls would burn the same exhausted quota.
    """


class TransientProviderError(ProviderError):
    """Network failure, 5xx, timeout or malformed payload on a single call."""


class VideoSearchProvider(ABC):
    """Executes one search query and returns merged raw candidates."""

    name = "provider"

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def search(self, query: str, region: Optional[str] = None,
                     max_results: Optional[int] = None) -> List[RawCandidate]:
        """Search for videos matching query.

        Args:
            query: Search query string
            region: Optional ISO region code to scope results
            max_results: Optional cap on search items requested

        Returns:
            Raw candidates with detail metadata merged in

        Raises:
            QuotaExceededError: On rate-limit or authorization refusal
            TransientProviderError: On any other failure
        """
