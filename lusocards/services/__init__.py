"""Services layer for business logic separation."""

from .repository import BaseStore, SQLiteStore
from .ai_service import AIService, AIProvider, AIConfig, create_ai_service
from .media_service import AudioPlayer, MediaCache, PydubPlayer
from .generation_service import BatchResult, GenerationOrchestrator
from .smart_sort import SmartSortAdvisor, SortResult, unsorted_cards
from .folder_service import FolderService, FolderState

__all__ = [
    "BaseStore",
    "SQLiteStore",
    "AIService",
    "AIProvider",
    "AIConfig",
    "create_ai_service",
    "AudioPlayer",
    "MediaCache",
    "PydubPlayer",
    "BatchResult",
    "GenerationOrchestrator",
    "SmartSortAdvisor",
    "SortResult",
    "unsorted_cards",
    "FolderService",
    "FolderState",
]
