"""Card data models for LusoCards."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.frequency import normalize_frequency

DEFAULT_FOLDER_ID = "default"


class Difficulty(Enum):
    """Coarse SRS difficulty of a card."""
    NEW = "New"
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


@dataclass
class Pattern:
    """Grammar pattern highlighted inside an example sentence."""
    target: str
    explanation: str

    def to_dict(self) -> Dict[str, str]:
        return {"target": self.target, "explanation": self.explanation}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pattern":
        return cls(target=str(data.get("target", "")), explanation=str(data.get("explanation", "")))


@dataclass
class Example:
    """Leveled example sentence (A1-B2)."""
    level: str
    sentence: str
    translation: str
    patterns: List[Pattern] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "level": self.level,
            "sentence": self.sentence,
            "translation": self.translation,
        }
        if self.patterns:
            data["patterns"] = [p.to_dict() for p in self.patterns]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Example":
        return cls(
            level=str(data.get("level", "")),
            sentence=str(data.get("sentence", "")),
            translation=str(data.get("translation", "")),
            patterns=[Pattern.from_dict(p) for p in data.get("patterns") or []],
        )


@dataclass
class VerbForms:
    """Verb forms for the five persons of one tense."""
    eu: str = ""
    tu: str = ""
    ele: str = ""
    nos: str = ""
    eles: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"eu": self.eu, "tu": self.tu, "ele": self.ele, "nos": self.nos, "eles": self.eles}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerbForms":
        return cls(**{k: str(data.get(k, "")) for k in ("eu", "tu", "ele", "nos", "eles")})


@dataclass
class Conjugation:
    """Conjugation table across presente/perfeito/imperfeito/futuro."""
    is_verb: bool = False
    tenses: Dict[str, VerbForms] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isVerb": self.is_verb,
            "tenses": {name: forms.to_dict() for name, forms in self.tenses.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Conjugation"]:
        if not data:
            return None
        tenses = data.get("tenses") or {}
        return cls(
            is_verb=bool(data.get("isVerb", data.get("is_verb", False))),
            tenses={name: VerbForms.from_dict(forms) for name, forms in tenses.items() if forms},
        )


@dataclass
class VocabularyItem:
    """Extracted word waiting to become a card. Never persisted."""
    word: str
    translation: str
    context: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.word and self.word.strip() and self.translation and self.translation.strip())

    def to_dict(self) -> Dict[str, str]:
        return {"word": self.word, "translation": self.translation, "context": self.context}


@dataclass
class ImageInput:
    """Image passed to vocabulary extraction."""
    data_base64: str
    mime_type: str = "image/jpeg"


@dataclass
class CardDetails:
    """Structured output of card detail synthesis."""
    definition: str
    grammar_notes: str = ""
    visual_prompt: str = ""
    frequency: Optional[str] = None
    conjugation: Optional[Conjugation] = None
    examples: List[Example] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardDetails":
        return cls(
            definition=str(data.get("definition") or "Definition unavailable"),
            grammar_notes=str(data.get("grammarNotes") or ""),
            visual_prompt=str(data.get("visualPrompt") or ""),
            frequency=data.get("frequency"),
            conjugation=Conjugation.from_dict(data.get("conjugation")),
            examples=[Example.from_dict(e) for e in data.get("examples") or []],
        )


@dataclass
class Flashcard:
    """Структура даних для однієї картки."""

    # Identity and content
    id: str
    original_term: str
    translation: str
    definition: str = ""
    examples: List[Example] = field(default_factory=list)
    conjugation: Optional[Conjugation] = None
    grammar_notes: str = ""

    # Media (URL or inline payload)
    image_url: Optional[str] = None
    image_prompt: str = ""
    audio_base64: Optional[str] = None

    # Organization
    folder_ids: List[str] = field(default_factory=lambda: [DEFAULT_FOLDER_ID])
    tags: List[str] = field(default_factory=list)
    frequency: Optional[str] = None

    # SRS state
    difficulty: Difficulty = Difficulty.NEW
    interval: int = 0
    ease_factor: float = 2.5
    next_review_date: int = 0

    created_at: int = 0

    @property
    def folders(self) -> List[str]:
        """Folder ids, with an empty list treated as uncategorized."""
        return list(self.folder_ids) if self.folder_ids else [DEFAULT_FOLDER_ID]

    @property
    def normalized_frequency(self) -> str:
        return normalize_frequency(self.frequency)

    @property
    def is_new(self) -> bool:
        return self.interval == 0

    def is_due(self, now: int) -> bool:
        return self.next_review_date <= now

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        return {
            "id": self.id,
            "original_term": self.original_term,
            "translation": self.translation,
            "definition": self.definition,
            "examples": [e.to_dict() for e in self.examples],
            "conjugation": self.conjugation.to_dict() if self.conjugation else None,
            "grammar_notes": self.grammar_notes,
            "image_url": self.image_url,
            "image_prompt": self.image_prompt,
            "audio_base64": self.audio_base64,
            "folder_ids": list(self.folder_ids),
            "tags": list(self.tags),
            "frequency": self.frequency,
            "difficulty": self.difficulty.value,
            "interval": self.interval,
            "ease_factor": self.ease_factor,
            "next_review_date": self.next_review_date,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Flashcard":
        return cls(
            id=data["id"],
            original_term=data.get("original_term", ""),
            translation=data.get("translation", ""),
            definition=data.get("definition") or "",
            examples=[Example.from_dict(e) for e in data.get("examples") or []],
            conjugation=Conjugation.from_dict(data.get("conjugation")),
            grammar_notes=data.get("grammar_notes") or "",
            image_url=data.get("image_url"),
            image_prompt=data.get("image_prompt") or "",
            audio_base64=data.get("audio_base64"),
            folder_ids=list(data.get("folder_ids") or [DEFAULT_FOLDER_ID]),
            tags=list(data.get("tags") or []),
            frequency=data.get("frequency"),
            difficulty=Difficulty(data.get("difficulty") or Difficulty.NEW.value),
            interval=int(data.get("interval") or 0),
            ease_factor=float(data.get("ease_factor") or 2.5),
            next_review_date=int(data.get("next_review_date") or 0),
            created_at=int(data.get("created_at") or 0),
        )


@dataclass
class Folder:
    """Named grouping of cards."""
    id: str
    name: str
    created_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "created_at": self.created_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        return cls(id=data["id"], name=data.get("name", ""), created_at=int(data.get("created_at") or 0))
