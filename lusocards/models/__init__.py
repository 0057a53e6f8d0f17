"""Data models for LusoCards."""

from .card import (
    DEFAULT_FOLDER_ID,
    CardDetails,
    Conjugation,
    Difficulty,
    Example,
    Flashcard,
    Folder,
    ImageInput,
    Pattern,
    VerbForms,
    VocabularyItem,
)
from .media import DecodedAudio, MediaSource, SourceKind
from .study import (
    PronunciationScore,
    Quest,
    SortSuggestion,
    Story,
    TranscriptionResult,
    UserProfile,
)

__all__ = [
    'DEFAULT_FOLDER_ID',
    'CardDetails',
    'Conjugation',
    'Difficulty',
    'Example',
    'Flashcard',
    'Folder',
    'ImageInput',
    'Pattern',
    'VerbForms',
    'VocabularyItem',
    'DecodedAudio',
    'MediaSource',
    'SourceKind',
    'PronunciationScore',
    'Quest',
    'SortSuggestion',
    'Story',
    'TranscriptionResult',
    'UserProfile',
]
