"""Exception hierarchy for LusoCards."""

from typing import Any, Optional


class LusoCardsError(Exception):
    """Base class for all library errors."""


class CollaboratorError(LusoCardsError):
    """External generation/transcription call failed or returned garbage."""

    def __init__(self, message: str, provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class GenerationError(CollaboratorError):
    """Generation collaborator returned output that could not be parsed."""


class RateLimitError(LusoCardsError):
    """Provider throttled the request (HTTP 429 or quota exhausted)."""

    def __init__(self, message: str = "Rate limit exceeded", provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class ValidationError(LusoCardsError):
    """Generated content or user input is missing required fields."""


class MediaResolutionError(LusoCardsError):
    """Audio or image could not be resolved from any cache tier."""


class RecordingError(LusoCardsError):
    """
    Microphone or recorded clip problem.

    The message is user-facing guidance text.
    """


class RecordingTooShortError(RecordingError):
    """Recorded clip is below the minimum size."""


class SpeechNotRecognizedError(RecordingError):
    """Transcription returned no transcript."""


class PersistenceError(LusoCardsError):
    """
    Backing store read/write failed.

    Attributes:
        unconfirmed: Locally computed state that could not be confirmed by
            the store. Callers keep showing it and reconcile on next fetch.
    """

    def __init__(self, message: str, unconfirmed: Any = None):
        super().__init__(message)
        self.unconfirmed = unconfirmed


class InsufficientWordsError(LusoCardsError):
    """Not enough words in the selected pool to build a story."""

    def __init__(self, available: int, required: int):
        super().__init__(f"Insufficient words: {available} available, {required} required")
        self.available = available
        self.required = required
