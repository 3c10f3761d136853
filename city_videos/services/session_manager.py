"""
Session management for proper resource handling and connection pooling.

All YouTube calls share one aiohttp session created at app startup and
closed at shutdown.
"""

import asyncio
import aiohttp
from typing import Optional

from city_videos.config import get_config


class SessionManager:
    """Centralized HTTP session manager."""

    _instance = None

    def __new__(cls):
        """Singleton pattern to ensure only one session manager exists."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not hasattr(self, '_initialized'):
            self._session: Optional[aiohttp.ClientSession] = None
            self._lock: Optional[asyncio.Lock] = None
            self._initialized = True

    async def get_session(self) -> aiohttp.ClientSession:
        """Get the shared HTTP session, creating it if necessary.

        Uses a lock to prevent race conditions when multiple coroutines
        try to create the session simultaneously.
        """
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._session is None or self._session.closed:
                self._session = self._create_session()
            return self._session

    def _create_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=get_config().get_timeout('api'))

        connector = aiohttp.TCPConnector(
            limit=100,
            limit_per_host=20,
            enable_cleanup_closed=True,
            keepalive_timeout=30.0,
            ttl_dns_cache=300,
        )

        return aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            headers={
                'User-Agent': 'CityVideos/1.0',
                'Accept': 'application/json',
            }
        )

    async def close(self):
        """Close the shared session and clean up resources."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None
            # A later event loop must not reuse this loop's lock
            self._lock = None

    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed


# Global session manager instance
session_manager = SessionManager()


async def get_session() -> aiohttp.ClientSession:
    """Get the global HTTP session."""
    return await session_manager.get_session()


async def close_session():
    """Close the global session manager.

    This should be called during application shutdown.
    """
    await session_manager.close()
