"""Audio fetchers - TTS via ElevenLabs or Edge TTS."""

import asyncio
import base64
import random
from typing import Any, Dict, Optional

import aiohttp
import edge_tts

from ..config import Config
from ..exceptions import CollaboratorError, RateLimitError
from ..utils.retry import call_with_retry, is_rate_limit_error
from ..utils.logger import setup_logger
from ..utils.parsing import TextParser
from .base import BaseFetcher

logger = setup_logger(__name__)

# Voice settings per playback mode
VOICE_MODES = {
    "card": {"stability": 0.75, "speed": 0.9},
    "story": {"stability": 0.5, "speed": 1.0},
}


class ElevenLabsAudioFetcher(BaseFetcher):
    """Generate speech via the ElevenLabs text-to-speech API."""

    provider = "elevenlabs"

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Initialize ElevenLabs fetcher.

        Args:
            api_key: API key (defaults to Config.ELEVEN_LABS_API_KEY)
            voice_id: Voice to use (defaults to Config.ELEVEN_LABS_VOICE_ID)
            model: TTS model (defaults to Config.ELEVEN_LABS_MODEL)
            timeout: Request timeout in seconds
        """
        super().__init__(timeout)
        self.api_key = api_key or Config.ELEVEN_LABS_API_KEY
        self.voice_id = voice_id or Config.ELEVEN_LABS_VOICE_ID
        self.model = model or Config.ELEVEN_LABS_MODEL

    def _session_headers(self) -> Dict[str, str]:
        return {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.api_key,
        }

    def build_payload(self, text: str, mode: str = "card") -> Dict[str, Any]:
        """Request body for the given text and mode ("card" or "story")."""
        settings = VOICE_MODES.get(mode, VOICE_MODES["card"])
        return {
            "text": text,
            "model_id": self.model,
            "voice_settings": {
                "stability": settings["stability"],
                "similarity_boost": 0.75,
                "style": 0.0,
                "use_speaker_boost": True,
                "speed": settings["speed"],
            },
        }

    async def _synthesize(self, text: str, mode: str) -> bytes:
        session = await self._get_session()
        url = f"{Config.ELEVEN_LABS_API_URL}/{self.voice_id}"
        try:
            async with session.post(url, json=self.build_payload(text, mode)) as response:
                if response.status == 200:
                    return await response.read()
                error = await response.text()
                if response.status == 429:
                    raise RateLimitError(f"ElevenLabs rate limit: {error[:200]}", provider=self.provider)
                raise CollaboratorError(
                    f"ElevenLabs API error {response.status}: {error[:200]}",
                    provider=self.provider,
                    status=response.status,
                )
        except asyncio.TimeoutError as e:
            raise CollaboratorError("ElevenLabs API timeout", provider=self.provider) from e
        except aiohttp.ClientError as e:
            raise CollaboratorError(f"ElevenLabs connection error: {e}", provider=self.provider) from e

    async def fetch(self, source: str, mode: str = "card", **kwargs: Any) -> str:
        """
        Generate audio for text.

        Args:
            source: Text to convert to speech
            mode: "card" (slower, steadier) or "story"

        Returns:
            Base64-encoded MP3
        """
        if not self.api_key:
            raise CollaboratorError("ElevenLabs API key not found. Set ELEVEN_LABS_API_KEY", provider=self.provider)

        text = TextParser.clean_for_tts(source)
        if not text:
            raise CollaboratorError("Nothing to synthesize", provider=self.provider)

        logger.info(f"Generating audio for: {text[:30]!r}")
        audio = await call_with_retry(lambda: self._synthesize(text, mode))
        if not audio:
            raise CollaboratorError("ElevenLabs returned empty audio", provider=self.provider)

        logger.debug(f"Audio generated ({len(audio) // 1024}KB)")
        return base64.b64encode(audio).decode("ascii")


class EdgeTTSAudioFetcher(BaseFetcher):
    """Handle audio generation via Edge TTS (no API key needed)."""

    provider = "edge_tts"

    # Edge TTS rate adjustment per mode
    MODE_RATES = {"card": "-10%", "story": "+0%"}

    def __init__(self, timeout: Optional[int] = None):
        super().__init__(timeout)
        # Get available voices from config, fallback to single voice
        self.available_voices = Config.settings.get("available_voices", [Config.VOICE])

    def get_random_voice(self) -> str:
        """Get a random voice from available voices."""
        return random.choice(self.available_voices)

    async def _synthesize(self, text: str, voice: str, rate: str) -> bytes:
        communicate = edge_tts.Communicate(text, voice, rate=rate)
        buffer = bytearray()
        try:
            async for chunk in communicate.stream():
                if chunk["type"] == "audio":
                    buffer.extend(chunk["data"])
        except Exception as e:
            # Check for rate limiting errors (HTTP 429)
            if is_rate_limit_error(e) or "Too Many Requests" in str(e):
                raise RateLimitError(f"Edge TTS rate limit: {str(e)[:80]}", provider=self.provider) from e
            raise CollaboratorError(f"Edge TTS failed: {str(e)[:80]}", provider=self.provider) from e
        return bytes(buffer)

    async def fetch(self, source: str, mode: str = "card", **kwargs: Any) -> str:
        """
        Generate audio using Edge TTS with random voice selection.

        Args:
            source: Text to convert to speech
            mode: "card" or "story"

        Returns:
            Base64-encoded MP3
        """
        text = TextParser.clean_for_tts(source)
        if not text:
            raise CollaboratorError("Nothing to synthesize", provider=self.provider)

        voice = self.get_random_voice()
        rate = self.MODE_RATES.get(mode, "+0%")

        audio = await call_with_retry(lambda: self._synthesize(text, voice, rate))
        if len(audio) <= 100:
            raise CollaboratorError("Edge TTS returned empty audio", provider=self.provider)
        return base64.b64encode(audio).decode("ascii")
