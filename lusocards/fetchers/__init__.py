"""Fetchers module - Media fetching with Strategy pattern."""

from .base import BaseFetcher
from .factory import FetcherFactory
from .audio import EdgeTTSAudioFetcher, ElevenLabsAudioFetcher
from .images import GeminiImageFetcher, PollinationsImageFetcher, detect_image_format
from .remote import RemoteFetcher
from .speech import GoogleSpeechTranscriber

# Register fetchers with factory
FetcherFactory.register_class(ElevenLabsAudioFetcher, "elevenlabs", "audio")
FetcherFactory.register_class(EdgeTTSAudioFetcher, "edge_tts", "audio")
FetcherFactory.register_class(GeminiImageFetcher, "gemini", "image")
FetcherFactory.register_class(PollinationsImageFetcher, "pollinations", "image")
FetcherFactory.register_class(GoogleSpeechTranscriber, "google", "speech")
FetcherFactory.register_class(RemoteFetcher, "http", "remote")

__all__ = [
    'BaseFetcher',
    'FetcherFactory',
    'EdgeTTSAudioFetcher',
    'ElevenLabsAudioFetcher',
    'GeminiImageFetcher',
    'PollinationsImageFetcher',
    'detect_image_format',
    'RemoteFetcher',
    'GoogleSpeechTranscriber',
]
