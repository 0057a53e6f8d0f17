"""Remote fetcher - download media bytes from http(s) or file:// URLs."""

import asyncio
import base64
from typing import Any
from urllib.parse import unquote, urlparse

import aiofiles
import aiohttp

from ..exceptions import MediaResolutionError
from .base import BaseFetcher


class RemoteFetcher(BaseFetcher):
    """Download previously stored media (global cache URLs, card URLs)."""

    provider = "remote"

    async def fetch_bytes(self, url: str) -> bytes:
        """
        Download raw bytes.

        Args:
            url: http(s):// or file:// location

        Returns:
            Content bytes

        Raises:
            MediaResolutionError: If the resource cannot be read
        """
        parsed = urlparse(url)

        if parsed.scheme == "file":
            path = unquote(parsed.path)
            try:
                async with aiofiles.open(path, "rb") as f:
                    return await f.read()
            except OSError as e:
                raise MediaResolutionError(f"Cannot read {path}: {e}") from e

        if parsed.scheme not in ("http", "https"):
            raise MediaResolutionError(f"Unsupported media URL: {url[:80]}")

        session = await self._get_session()
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise MediaResolutionError(f"Download failed ({response.status}): {url[:80]}")
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise MediaResolutionError(f"Download failed: {url[:80]}: {e}") from e

    async def fetch(self, source: str, **kwargs: Any) -> str:
        """Download and return the content as base64."""
        content = await self.fetch_bytes(source)
        return base64.b64encode(content).decode("ascii")
