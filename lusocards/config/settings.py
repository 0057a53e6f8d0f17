"""Global settings and configuration."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)

from .languages import LANG_CONFIG

# Поточна мова навчання
CURRENT_LANG = "PT"


def _env(*keys: str, default: str = "") -> str:
    """Return the first non-empty environment value among keys."""
    for key in keys:
        value = os.environ.get(key)
        if value:
            return value
    return default


@dataclass
class Config:
    """Application-wide configuration."""

    settings = LANG_CONFIG.get(CURRENT_LANG, LANG_CONFIG["PT"])

    # Мовні параметри
    CURRENT_LANG: str = CURRENT_LANG
    LABEL: str = settings["label"]
    NATIVE_LANGUAGE: str = settings["native_language"]
    SPEECH_LANGUAGE_CODE: str = settings["speech_language_code"]
    VOICE: str = settings["voice"]

    # Gemini (text + image generation)
    # NEVER hardcode secret keys in source code!
    GEMINI_API_KEY: str = _env("GEMINI_API_KEY", "API_KEY")
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_TEXT_MODEL: str = _env("GEMINI_TEXT_MODEL", default="gemini-2.5-flash")
    GEMINI_IMAGE_MODEL: str = _env("GEMINI_IMAGE_MODEL", default="gemini-2.5-flash-image")

    # ElevenLabs (audio synthesis)
    ELEVEN_LABS_API_KEY: str = _env("ELEVEN_LABS_API_KEY", "ELEVENLABS_API_KEY")
    ELEVEN_LABS_API_URL: str = "https://api.elevenlabs.io/v1/text-to-speech"
    ELEVEN_LABS_VOICE_ID: str = _env("ELEVEN_LABS_VOICE_ID", default="zKjRewuiqTkXNUVAMwat")
    ELEVEN_LABS_MODEL: str = _env("ELEVEN_LABS_MODEL", default="eleven_multilingual_v2")

    # Google Cloud Speech-to-Text
    GOOGLE_CLOUD_API_KEY: str = _env("GOOGLE_CLOUD_API_KEY")
    GOOGLE_SPEECH_API_URL: str = "https://speech.googleapis.com/v1/speech:recognize"
    RECORDING_ENCODING: str = "WEBM_OPUS"
    RECORDING_SAMPLE_RATE: int = 48000

    # Pollinations API Configuration
    # Get your API key from https://enter.pollinations.ai/
    POLLINATIONS_API_KEY: str = _env("POLLINATIONS_API_KEY")
    POLLINATIONS_API_URL: str = "https://gen.pollinations.ai/image"
    POLLINATIONS_IMAGE_MODEL: str = "zimage"

    # Media providers: elevenlabs | edge_tts, gemini | pollinations
    AUDIO_PROVIDER: str = _env("AUDIO_PROVIDER", default="elevenlabs")
    IMAGE_PROVIDER: str = _env("IMAGE_PROVIDER", default="gemini")

    # Асинхронні налаштування
    CONCURRENCY: int = 4
    RETRIES: int = int(_env("RETRIES", default="3"))
    RETRY_DELAY: float = float(_env("RETRY_DELAY", default="2.0"))
    TIMEOUT: int = int(_env("TIMEOUT", default="60"))
    IMAGE_TIMEOUT: int = 90

    # Media cache
    PCM_SAMPLE_RATE: int = 24000
    PAYLOAD_MIN_LENGTH: int = 100
    IMAGE_STYLE_SUFFIX: str = (
        ", minimalist flat vector art, simple illustration, white background, "
        "high contrast, clean lines, no text"
    )

    # Study
    DEFAULT_EASE_FACTOR: float = 2.5
    NEW_CARD_FALLBACK_LIMIT: int = 10
    MIN_RECORDING_BYTES: int = 1000
    STORY_RECENT_DAYS: int = 7
    XP_PER_LEVEL: int = 500

    LOG_LEVEL: str = _env("LOG_LEVEL", default="INFO")

    # Cross-platform paths using pathlib
    # BASE_DIR is the project root (parent of lusocards/)
    BASE_DIR: Path = Path(__file__).parent.parent.parent.resolve()

    DATA_DIR: str = _env("LUSOCARDS_DATA_DIR", default=str(BASE_DIR / "data"))
    DB_PATH: str = str(Path(DATA_DIR) / "lusocards.db")
    MEDIA_DIR: str = str(Path(DATA_DIR) / "media")
