"""Speech fetcher - transcription via Google Cloud Speech-to-Text."""

import asyncio
import base64
from typing import Any, Dict, Optional

import aiohttp

from ..config import Config
from ..exceptions import CollaboratorError, RateLimitError
from ..models import TranscriptionResult
from ..utils.logger import setup_logger
from ..utils.retry import call_with_retry
from .base import BaseFetcher

logger = setup_logger(__name__)


class GoogleSpeechTranscriber(BaseFetcher):
    """Transcribe recorded speech (WEBM/Opus, 48 kHz, pt-PT)."""

    provider = "google_speech"

    def __init__(
        self,
        api_key: Optional[str] = None,
        language_code: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        super().__init__(timeout)
        self.api_key = api_key or Config.GOOGLE_CLOUD_API_KEY
        self.language_code = language_code or Config.SPEECH_LANGUAGE_CODE

    def build_request(self, audio: bytes) -> Dict[str, Any]:
        """Request body for a recognize call."""
        return {
            "config": {
                "encoding": Config.RECORDING_ENCODING,
                "sampleRateHertz": Config.RECORDING_SAMPLE_RATE,
                "languageCode": self.language_code,
                "enableWordConfidence": True,
                "model": "default",
            },
            "audio": {"content": base64.b64encode(audio).decode("ascii")},
        }

    async def _recognize(self, audio: bytes) -> Dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.post(
                Config.GOOGLE_SPEECH_API_URL,
                params={"key": self.api_key},
                json=self.build_request(audio),
            ) as response:
                if response.status == 200:
                    return await response.json()
                error = await response.text()
                if response.status == 429:
                    raise RateLimitError(f"Speech API rate limit: {error[:200]}", provider=self.provider)
                raise CollaboratorError(
                    f"Speech recognition failed ({response.status}): {error[:200]}",
                    provider=self.provider,
                    status=response.status,
                )
        except asyncio.TimeoutError as e:
            raise CollaboratorError("Speech API timeout", provider=self.provider) from e
        except aiohttp.ClientError as e:
            raise CollaboratorError(f"Speech API connection error: {e}", provider=self.provider) from e

    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        """
        Transcribe recorded audio.

        Args:
            audio: Recorded clip bytes

        Returns:
            TranscriptionResult (empty transcript when nothing was recognized)
        """
        if not self.api_key:
            raise CollaboratorError("Google Cloud API key not found. Set GOOGLE_CLOUD_API_KEY", provider=self.provider)

        logger.info(f"Transcribing audio ({len(audio) // 1024}KB)")
        data = await call_with_retry(lambda: self._recognize(audio))
        return parse_recognize_response(data)

    async def fetch(self, source: str, **kwargs: Any) -> str:
        """Transcribe a base64 clip and return just the transcript."""
        result = await self.transcribe(base64.b64decode(source))
        return result.transcript


def parse_recognize_response(data: Dict[str, Any]) -> TranscriptionResult:
    """Convert a speech:recognize response body."""
    results = data.get("results") or []
    if not results or not results[0].get("alternatives"):
        return TranscriptionResult(transcript="", confidence=0.0, words=[])

    best = results[0]["alternatives"][0]
    return TranscriptionResult(
        transcript=best.get("transcript", "") or "",
        confidence=float(best.get("confidence", 0) or 0),
        words=[(w.get("word", ""), float(w.get("confidence", 0) or 0)) for w in best.get("words") or []],
    )
