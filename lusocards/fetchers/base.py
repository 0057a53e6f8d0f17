"""Base fetcher class."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from ..config import Config


class BaseFetcher(ABC):
    """
    Abstract base class for all fetchers.

    Provides a lazily created shared aiohttp session, lifecycle management
    and async context manager support. Subclasses implement fetch() and
    may override _session_headers() or close().
    """

    # Provider name used in log lines and errors
    provider: str = "base"

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout or Config.TIMEOUT
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    def _session_headers(self) -> Dict[str, str]:
        """Default headers for every request of this fetcher."""
        return {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create a shared aiohttp session (connection pooling)."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=Config.CONCURRENCY * 2,  # Connection pool size
                    limit_per_host=Config.CONCURRENCY,
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    headers=self._session_headers(),
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                )
            return self._session

    @abstractmethod
    async def fetch(self, source: str, **kwargs: Any) -> str:
        """
        Produce media for a source.

        Args:
            source: Text to speak, prompt to draw, URL to download...
            **kwargs: Fetcher-specific options

        Returns:
            Inline-encoded (base64) payload

        Raises:
            CollaboratorError: On provider failure
        """
        pass

    async def close(self) -> None:
        """Close the aiohttp session. Call this when done with the fetcher."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None

    async def __aenter__(self) -> "BaseFetcher":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - ensure resources are closed."""
        await self.close()
