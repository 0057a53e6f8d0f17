"""Study module - scheduling, pronunciation, stories and quests."""

from .quests import DAILY_QUESTS, QuestTracker, level_for_xp
from .scheduler import SrsScheduler, StudyQueue, StudySession, learned_cards, learning_cards
from .pronunciation import MicrophoneSource, PronunciationScorer, RecordingSession
from .stories import StoryAssembler, StoryPolicy

__all__ = [
    'DAILY_QUESTS',
    'QuestTracker',
    'level_for_xp',
    'SrsScheduler',
    'StudyQueue',
    'StudySession',
    'learned_cards',
    'learning_cards',
    'MicrophoneSource',
    'PronunciationScorer',
    'RecordingSession',
    'StoryAssembler',
    'StoryPolicy',
]
