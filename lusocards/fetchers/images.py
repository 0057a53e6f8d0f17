"""Image fetchers - generate images via Gemini or Pollinations."""

import asyncio
import base64
import urllib.parse
from typing import Any, Dict, Optional

import aiohttp

from ..config import Config
from ..exceptions import CollaboratorError, RateLimitError
from ..utils.logger import setup_logger
from ..utils.retry import call_with_retry
from .base import BaseFetcher

logger = setup_logger(__name__)


# Image format magic bytes for validation
IMAGE_MAGIC_BYTES = {
    b'\xff\xd8\xff': 'jpeg',      # JPEG
    b'\x89PNG': 'png',            # PNG
    b'GIF8': 'gif',               # GIF
}


def detect_image_format(content: bytes) -> Optional[str]:
    """Detect image format from magic bytes."""
    if not content or len(content) < 4:
        return None
    for magic, fmt in IMAGE_MAGIC_BYTES.items():
        if content.startswith(magic):
            return fmt
    # Check WebP specifically (RIFF....WEBP)
    if content[:4] == b'RIFF' and len(content) > 12 and content[8:12] == b'WEBP':
        return 'webp'
    return None


class GeminiImageFetcher(BaseFetcher):
    """Generate images with the Gemini image model."""

    provider = "gemini"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, timeout: Optional[int] = None):
        super().__init__(timeout or Config.IMAGE_TIMEOUT)
        self.api_key = api_key or Config.GEMINI_API_KEY
        self.model = model or Config.GEMINI_IMAGE_MODEL

    async def _generate(self, prompt: str) -> Dict[str, Any]:
        session = await self._get_session()
        url = f"{Config.GEMINI_API_URL}/{self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            async with session.post(url, params={"key": self.api_key}, json=payload) as response:
                if response.status == 200:
                    return await response.json()
                error = await response.text()
                if response.status == 429:
                    raise RateLimitError(f"Gemini image rate limit: {error[:200]}", provider=self.provider)
                raise CollaboratorError(
                    f"Gemini image API error {response.status}: {error[:200]}",
                    provider=self.provider,
                    status=response.status,
                )
        except asyncio.TimeoutError as e:
            raise CollaboratorError("Gemini image API timeout", provider=self.provider) from e
        except aiohttp.ClientError as e:
            raise CollaboratorError(f"Gemini image connection error: {e}", provider=self.provider) from e

    async def fetch(self, source: str, **kwargs: Any) -> str:
        """
        Generate an image from a prompt.

        Args:
            source: Prompt text for image generation

        Returns:
            Base64-encoded image bytes
        """
        if not self.api_key:
            raise CollaboratorError("Gemini API key not found. Set GEMINI_API_KEY", provider=self.provider)

        data = await call_with_retry(lambda: self._generate(source))
        for candidate in data.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                inline = part.get("inlineData") or {}
                if inline.get("data"):
                    return inline["data"]

        raise CollaboratorError("No image generated", provider=self.provider)


class PollinationsImageFetcher(BaseFetcher):
    """Handle image generation via Pollinations API with session pooling."""

    provider = "pollinations"

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[int] = None):
        super().__init__(timeout or Config.IMAGE_TIMEOUT)
        self.api_key = api_key or Config.POLLINATIONS_API_KEY

    def _session_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        }

    async def _download(self, prompt: str) -> bytes:
        session = await self._get_session()

        # URL encode the prompt
        url = f"{Config.POLLINATIONS_API_URL}/{urllib.parse.quote(prompt)}"
        params = {
            "model": Config.POLLINATIONS_IMAGE_MODEL,
            "width": "320",
            "height": "200",
            "nologo": "true",
        }

        try:
            async with session.get(url, params=params) as response:
                if response.status == 200:
                    return await response.read()
                if response.status == 429:
                    raise RateLimitError("Pollinations rate limit (429)", provider=self.provider)
                raise CollaboratorError(
                    f"Pollinations API error {response.status}",
                    provider=self.provider,
                    status=response.status,
                )
        except asyncio.TimeoutError as e:
            raise CollaboratorError("Pollinations API timeout", provider=self.provider) from e
        except aiohttp.ClientError as e:
            raise CollaboratorError(f"Pollinations connection error: {e}", provider=self.provider) from e

    async def fetch(self, source: str, **kwargs: Any) -> str:
        """
        Generate image using Pollinations API from prompt text.

        Args:
            source: Prompt text for image generation

        Returns:
            Base64-encoded image bytes
        """
        prompt = str(source).strip()
        if len(prompt) < 5:
            raise CollaboratorError("Image prompt too short", provider=self.provider)
        if not self.api_key:
            raise CollaboratorError("No API key configured - set POLLINATIONS_API_KEY", provider=self.provider)

        content = await call_with_retry(lambda: self._download(prompt))

        # Robust image format detection
        img_format = detect_image_format(content)
        if not img_format or len(content) <= 2000:
            raise CollaboratorError(
                f"Invalid image: {len(content)} bytes, magic: {content[:4]!r}",
                provider=self.provider,
            )
        return base64.b64encode(content).decode("ascii")
