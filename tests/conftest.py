import asyncio
import base64
from typing import Dict, List, Optional

import numpy as np
import pytest

from lusocards.exceptions import GenerationError, PersistenceError
from lusocards.models import DecodedAudio, Flashcard, Folder, Story, TranscriptionResult, UserProfile
from lusocards.services import MediaCache
from lusocards.services.repository import BaseStore
from lusocards.study import QuestTracker

NOW = 1_700_000_000_000

AUDIO_BYTES = b"\x01\x00" * 200
AUDIO_PAYLOAD = base64.b64encode(AUDIO_BYTES).decode("ascii")
IMAGE_PAYLOAD = base64.b64encode(b"\x89PNG\r\n\x1a\n" + b"\x00" * 64).decode("ascii")


def fixed_clock() -> int:
    return NOW


def fake_decoder(raw: bytes, sample_rate: int) -> DecodedAudio:
    return DecodedAudio(samples=np.zeros(len(raw) // 2, dtype=np.float32), sample_rate=sample_rate)


def make_card(card_id: str, term: str = "", **overrides) -> Flashcard:
    data = dict(
        id=card_id,
        original_term=term or f"palavra-{card_id}",
        translation=f"слово-{card_id}",
        created_at=NOW,
        next_review_date=NOW,
    )
    data.update(overrides)
    return Flashcard(**data)


class FakeAudioFetcher:
    """Counts generation calls; sleeps so concurrent callers overlap."""

    def __init__(self, payload: str = AUDIO_PAYLOAD, fail_times: int = 0):
        self.payload = payload
        self.fail_times = fail_times
        self.calls: List[tuple] = []
        self.closed = False

    async def fetch(self, source: str, mode: str = "card", **kwargs) -> str:
        self.calls.append((source, mode))
        await asyncio.sleep(0.01)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise GenerationError("synthesis failed", provider="fake")
        return self.payload

    async def close(self) -> None:
        self.closed = True


class FakeImageFetcher:
    def __init__(self, payload: str = IMAGE_PAYLOAD, fail: bool = False):
        self.payload = payload
        self.fail = fail
        self.prompts: List[str] = []

    async def fetch(self, source: str, **kwargs) -> str:
        self.prompts.append(source)
        await asyncio.sleep(0.01)
        if self.fail:
            raise GenerationError("image failed", provider="fake")
        return self.payload

    async def close(self) -> None:
        pass


class FakeRemoteFetcher:
    def __init__(self, content: bytes = AUDIO_BYTES):
        self.content = content
        self.urls: List[str] = []

    async def fetch_bytes(self, url: str) -> bytes:
        self.urls.append(url)
        return self.content

    async def close(self) -> None:
        pass


class FakePlayer:
    def __init__(self):
        self.played: List[tuple] = []

    async def play(self, audio: DecodedAudio, rate: float = 1.0) -> None:
        self.played.append((audio, rate))


class FakeStore(BaseStore):
    """In-memory store; set `fail` to make every write raise PersistenceError."""

    def __init__(self):
        self.folders: Dict[str, Folder] = {}
        self.cards: Dict[str, Flashcard] = {}
        self.stories: List[Story] = []
        self.profile: Optional[UserProfile] = None
        self.global_audio: Dict[str, str] = {}
        self.global_images: Dict[str, str] = {}
        self.fail = False
        self.fail_lookups = False
        self.writes: List[tuple] = []

    def _write(self, *op) -> None:
        self.writes.append(op)
        if self.fail:
            raise PersistenceError(f"write failed: {op[0]}")

    async def list_folders(self):
        return list(self.folders.values())

    async def insert_folder(self, folder):
        self._write("insert_folder", folder.id)
        self.folders[folder.id] = folder

    async def delete_folder(self, folder_id):
        self._write("delete_folder", folder_id)
        self.folders.pop(folder_id, None)

    async def list_flashcards(self):
        return list(self.cards.values())

    async def insert_flashcards(self, cards):
        self._write("insert_flashcards", [c.id for c in cards])
        for card in cards:
            self.cards[card.id] = card

    async def update_flashcard_srs(self, card):
        self._write("update_flashcard_srs", card.id)
        self.cards[card.id] = card

    async def update_flashcard_folders(self, card_id, folder_ids):
        self._write("update_flashcard_folders", card_id, list(folder_ids))

    async def update_flashcard_audio(self, card_id, audio):
        self._write("update_flashcard_audio", card_id)

    async def update_flashcard_examples(self, card):
        self._write("update_flashcard_examples", card.id)

    async def delete_flashcards(self, card_ids):
        self._write("delete_flashcards", list(card_ids))
        for card_id in card_ids:
            self.cards.pop(card_id, None)

    async def insert_story(self, story):
        self._write("insert_story", story.id)
        self.stories.append(story)

    async def list_stories(self):
        return list(self.stories)

    async def load_profile(self):
        return self.profile

    async def save_profile(self, profile):
        self._write("save_profile")
        self.profile = profile

    async def find_global_audio(self, text):
        if self.fail_lookups:
            raise PersistenceError("lookup failed")
        return self.global_audio.get(text.strip().lower())

    async def save_global_audio(self, text, payload):
        self._write("save_global_audio", text)
        key = text.strip().lower()
        return self.global_audio.setdefault(key, f"https://cdn.test/audio/{key}.mp3")

    async def find_global_image(self, word):
        if self.fail_lookups:
            raise PersistenceError("lookup failed")
        return self.global_images.get(word.strip().lower())

    async def save_global_image(self, word, payload):
        self._write("save_global_image", word)
        key = word.strip().lower()
        return self.global_images.setdefault(key, f"https://cdn.test/images/{key}.png")


class FakeAI:
    """Scripted stand-in for AIService."""

    def __init__(self):
        self.vocabulary: List[dict] = []
        self.details: Dict[str, dict] = {}
        self.fail_words: set = set()
        self.patterns: List[dict] = []
        self.story = {"pt": "O gato come pão.", "ru": "Кот ест хлеб."}
        self.sort_suggestions: List[dict] = []
        self.calls: List[tuple] = []

    async def extract_vocabulary(self, source, count=5):
        self.calls.append(("extract_vocabulary", count))
        return self.vocabulary

    async def generate_card_details(self, word):
        self.calls.append(("generate_card_details", word))
        if word in self.fail_words:
            raise GenerationError(f"no details for {word}")
        return self.details.get(word, {
            "definition": f"definition of {word}",
            "grammarNotes": "noun",
            "visualPrompt": f"a picture of {word}",
            "frequency": "Top 1000",
            "examples": [
                {"level": level, "sentence": f"{word} {level}", "translation": f"{level} tr"}
                for level in ("A1", "A2", "B1", "B2")
            ],
        })

    async def enrich_card_patterns(self, term, examples):
        self.calls.append(("enrich_card_patterns", term))
        return self.patterns

    async def generate_story(self, words):
        self.calls.append(("generate_story", tuple(words)))
        return dict(self.story)

    async def suggest_smart_sorting(self, cards, folders):
        self.calls.append(("suggest_smart_sorting", cards, folders))
        return self.sort_suggestions


class FakeTranscriber:
    def __init__(self, transcript: str = "", error: Optional[Exception] = None):
        self.transcript = transcript
        self.error = error
        self.received: List[bytes] = []

    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        self.received.append(audio)
        if self.error is not None:
            raise self.error
        return TranscriptionResult(transcript=self.transcript, confidence=0.9)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def audio_fetcher():
    return FakeAudioFetcher()


@pytest.fixture
def image_fetcher():
    return FakeImageFetcher()


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def media(store, audio_fetcher, image_fetcher, player):
    return MediaCache(
        store=store,
        audio_fetcher=audio_fetcher,
        image_fetcher=image_fetcher,
        remote_fetcher=FakeRemoteFetcher(),
        decoder=fake_decoder,
        player=player,
    )


@pytest.fixture
def ai():
    return FakeAI()


@pytest.fixture
def quests(store):
    return QuestTracker(store, clock=fixed_clock)
