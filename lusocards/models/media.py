"""Media models: tagged sources and decoded audio."""

import hashlib
from dataclasses import dataclass
from enum import Enum

import numpy as np


class SourceKind(Enum):
    """What a media value actually is."""
    TEXT = "text"        # lookup key, spoken text
    INLINE = "inline"    # base64 payload, optional data: prefix
    URL = "url"          # remote or file:// location


@dataclass(frozen=True)
class MediaSource:
    """
    Explicitly tagged media value.

    Callers always say whether a value is text to speak, an inline
    payload or a URL, so nothing has to be guessed from string length.
    """
    kind: SourceKind
    value: str

    @classmethod
    def text(cls, value: str) -> "MediaSource":
        return cls(SourceKind.TEXT, value)

    @classmethod
    def inline(cls, value: str) -> "MediaSource":
        return cls(SourceKind.INLINE, value)

    @classmethod
    def url(cls, value: str) -> "MediaSource":
        return cls(SourceKind.URL, value)

    @classmethod
    def from_stored(cls, value: str) -> "MediaSource":
        """
        Tag a value read from a card's media field.

        Stored media fields only ever hold URLs or inline payloads.
        """
        if value.startswith(("http://", "https://", "file://")):
            return cls.url(value)
        return cls.inline(value)

    @property
    def cache_key(self) -> str:
        """Key used by the decoded-buffer cache."""
        if self.kind is SourceKind.INLINE:
            digest = hashlib.sha256(self.value.encode("utf-8")).hexdigest()[:16]
            return f"payload:{digest}"
        return self.value


@dataclass
class DecodedAudio:
    """Playable audio as normalized float32 samples."""
    samples: np.ndarray
    sample_rate: int
    channels: int = 1

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        frames = len(self.samples) // max(self.channels, 1)
        return frames / float(self.sample_rate) if self.sample_rate else 0.0
