"""Text parsing utilities for consistent text processing across the application."""

import html
import re
import unicodedata
from typing import List


class TextParser:
    """
    Centralized text parsing utilities.

    Single source of truth for cache keys, comparison normalization,
    storage filenames and TTS cleanup.
    """

    # HTML tag removal pattern
    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')

    # Numbered list cleanup pattern
    NUMBERED_LIST_PATTERN = re.compile(r'(^|\s)\d+[\.\)]\s*')

    # Whitespace normalization pattern
    WHITESPACE_PATTERN = re.compile(r'\s+')

    # Punctuation (anything that is not a word char or whitespace)
    PUNCTUATION_PATTERN = re.compile(r'[^\w\s]')

    # Storage-safe filename characters
    UNSAFE_FILENAME_PATTERN = re.compile(r'[^a-z0-9-]+')

    MAX_FILENAME_LENGTH = 64

    @classmethod
    def normalize_unicode(cls, text: str) -> str:
        """NFC form, so a precomposed "é" and "e" + combining accent compare equal."""
        if not text:
            return ""
        return unicodedata.normalize('NFC', str(text))

    @classmethod
    def normalize_key(cls, text: str) -> str:
        """Global cache key: trimmed and lowercased."""
        if not text:
            return ""
        return cls.normalize_unicode(text).strip().lower()

    @classmethod
    def strip_diacritics(cls, text: str) -> str:
        """Decompose (NFD) and drop combining marks: 'ação' -> 'acao'."""
        if not text:
            return ""
        decomposed = unicodedata.normalize('NFD', str(text))
        return "".join(ch for ch in decomposed if not unicodedata.combining(ch))

    @classmethod
    def normalize_for_comparison(cls, text: str) -> str:
        """
        Normalize spoken/expected text before scoring.

        Lowercase, strip diacritics, strip punctuation, trim.
        """
        if not text:
            return ""
        text = cls.strip_diacritics(str(text).lower())
        text = cls.PUNCTUATION_PATTERN.sub('', text)
        return text.strip()

    @classmethod
    def tokenize(cls, text: str) -> List[str]:
        """Split already-normalized text on whitespace."""
        return [w for w in cls.WHITESPACE_PATTERN.split(text) if w]

    @classmethod
    def safe_filename(cls, text: str) -> str:
        """
        Build a storage-safe filename stem from arbitrary text.

        Args:
            text: Word or phrase

        Returns:
            ASCII stem of [a-z0-9-], at most 64 chars ("file" if nothing survives)
        """
        stem = cls.strip_diacritics(cls.normalize_key(text))
        stem = cls.UNSAFE_FILENAME_PATTERN.sub('-', stem).strip('-')
        stem = stem[:cls.MAX_FILENAME_LENGTH].rstrip('-')
        return stem or "file"

    @classmethod
    def strip_data_uri(cls, payload: str) -> str:
        """Drop a leading 'data:<mime>;base64,' prefix and whitespace."""
        if not payload:
            return ""
        if payload.startswith("data:") and "," in payload:
            payload = payload.split(",", 1)[1]
        return cls.WHITESPACE_PATTERN.sub('', payload)

    @classmethod
    def clean_for_tts(cls, text: str) -> str:
        """Plain text for speech synthesis: entities decoded, tags and list numbering dropped."""
        if not text:
            return ""

        text = cls.HTML_TAG_PATTERN.sub('', html.unescape(str(text)))
        text = cls.NUMBERED_LIST_PATTERN.sub(' ', text)
        text = cls.WHITESPACE_PATTERN.sub(' ', text).strip()

        return cls.normalize_unicode(text)
