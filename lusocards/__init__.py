"""LusoCards - European Portuguese vocabulary cards with cached media"""

__version__ = "1.0.0"
__author__ = "LusoCards Team"

from .config import Config, LANG_CONFIG
from .services import (
    GenerationOrchestrator,
    MediaCache,
    SmartSortAdvisor,
    SQLiteStore,
    create_ai_service,
)
from .study import PronunciationScorer, SrsScheduler, StoryAssembler

__all__ = [
    'Config',
    'LANG_CONFIG',
    'GenerationOrchestrator',
    'MediaCache',
    'SmartSortAdvisor',
    'SQLiteStore',
    'create_ai_service',
    'PronunciationScorer',
    'SrsScheduler',
    'StoryAssembler',
]
