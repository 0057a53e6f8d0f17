"""Study-side models: quests, profile, stories, sorting and scoring."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Quest:
    """Daily gamification quest."""
    id: str
    type: str
    target: int
    progress: int = 0
    completed: bool = False
    xp_reward: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "target": self.target,
            "progress": self.progress,
            "completed": self.completed,
            "xp_reward": self.xp_reward,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quest":
        return cls(
            id=data["id"],
            type=data["type"],
            target=int(data.get("target", 0)),
            progress=int(data.get("progress", 0)),
            completed=bool(data.get("completed", False)),
            xp_reward=int(data.get("xp_reward", 0)),
        )


@dataclass
class UserProfile:
    """XP, level and today's quests."""
    xp: int = 0
    level: int = 1
    quests: List[Quest] = field(default_factory=list)
    quests_date: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "xp": self.xp,
            "level": self.level,
            "quests": [q.to_dict() for q in self.quests],
            "quests_date": self.quests_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            xp=int(data.get("xp", 0)),
            level=int(data.get("level", 1)),
            quests=[Quest.from_dict(q) for q in data.get("quests") or []],
            quests_date=data.get("quests_date", ""),
        )


@dataclass
class Story:
    """Short narrative built from a word pool."""
    id: str
    text_target: str
    text_native: str
    words: List[str] = field(default_factory=list)
    audio: Optional[str] = None
    created_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text_target": self.text_target,
            "text_native": self.text_native,
            "words": list(self.words),
            "audio": self.audio,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Story":
        return cls(
            id=data["id"],
            text_target=data.get("text_target", ""),
            text_native=data.get("text_native", ""),
            words=list(data.get("words") or []),
            audio=data.get("audio"),
            created_at=int(data.get("created_at") or 0),
        )


@dataclass
class SortSuggestion:
    """One clustering suggestion from smart sort."""
    action: str
    target_folder_id: str = ""
    suggested_folder_name: Optional[str] = None
    card_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SortSuggestion":
        return cls(
            action=str(data.get("action", "move")),
            target_folder_id=str(data.get("targetFolderId") or ""),
            suggested_folder_name=data.get("suggestedFolderName"),
            card_ids=[str(c) for c in data.get("cardIds") or []],
        )


@dataclass
class TranscriptionResult:
    """Speech-to-text output."""
    transcript: str
    confidence: float = 0.0
    words: List[Tuple[str, float]] = field(default_factory=list)


@dataclass
class PronunciationScore:
    """Result of comparing expected and heard phrases."""
    is_correct: bool
    score: int
    expected: str
    heard: str
    feedback: str
    missing_words: List[str] = field(default_factory=list)
    extra_words: List[str] = field(default_factory=list)
    matched_words: List[str] = field(default_factory=list)
