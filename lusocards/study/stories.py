"""Short stories built from the learner's own words."""

import random
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..config import Config
from ..exceptions import InsufficientWordsError
from ..models import Flashcard, Story
from ..services.ai_service import AIService
from ..services.media_service import MediaCache
from ..services.repository import BaseStore
from ..utils.frequency import normalize_frequency
from ..utils.helpers import MS_PER_DAY, new_id, now_ms
from ..utils.logger import setup_logger
from .quests import QuestTracker

logger = setup_logger(__name__)

ALL_FOLDERS = "all"


@dataclass
class StoryPolicy:
    """
    Which cards may appear in a story.

    kind is "folder" (value = folder id or "all"), "frequency"
    (value = bucket) or "recent" (days = look-back window).
    """
    kind: str = "folder"
    value: str = ALL_FOLDERS
    days: Optional[int] = None

    @classmethod
    def folder(cls, folder_id: str = ALL_FOLDERS) -> "StoryPolicy":
        return cls("folder", folder_id)

    @classmethod
    def frequency(cls, bucket: str) -> "StoryPolicy":
        return cls("frequency", bucket)

    @classmethod
    def recent(cls, days: Optional[int] = None) -> "StoryPolicy":
        return cls("recent", days=days)

    def matches(self, card: Flashcard, now: int) -> bool:
        if self.kind == "folder":
            return self.value == ALL_FOLDERS or self.value in card.folders
        if self.kind == "frequency":
            return normalize_frequency(card.frequency) == self.value
        if self.kind == "recent":
            days = self.days or Config.STORY_RECENT_DAYS
            return card.created_at >= now - days * MS_PER_DAY
        raise ValueError(f"Unknown story policy: {self.kind}")


class StoryAssembler:
    """Selects words, asks for a story, narrates and saves it."""

    def __init__(
        self,
        ai: AIService,
        media: Optional[MediaCache] = None,
        store: Optional[BaseStore] = None,
        quests: Optional[QuestTracker] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.ai = ai
        self.media = media
        self.store = store
        self.quests = quests
        self.clock = clock or now_ms

    def select_pool(
        self,
        cards: List[Flashcard],
        policy: StoryPolicy,
        count: int,
        rng: Optional[random.Random] = None,
        now: Optional[int] = None,
    ) -> List[Flashcard]:
        """
        Pick `count` random cards allowed by the policy.

        Raises:
            InsufficientWordsError: If fewer cards match than requested
        """
        now = self.clock() if now is None else now
        pool = [c for c in cards if policy.matches(c, now)]
        if len(pool) < count:
            raise InsufficientWordsError(available=len(pool), required=count)
        return (rng or random).sample(pool, count)

    async def assemble(self, words: List[str]) -> Story:
        """Generate a story that uses the given words."""
        result = await self.ai.generate_story(words)
        logger.info(f"Story generated from {len(words)} words")
        return Story(
            id=new_id(),
            text_target=result["pt"],
            text_native=result.get("ru", ""),
            words=list(words),
            created_at=self.clock(),
        )

    async def narrate(self, story: Story) -> str:
        """Resolve narration audio; stores it on the story and returns it."""
        if self.media is None:
            raise ValueError("Narration requires a MediaCache")
        story.audio = await self.media.get_or_generate_audio(story.text_target, mode="story")
        return story.audio

    async def save_story(self, story: Story) -> Story:
        """
        Persist a story.

        Raises:
            PersistenceError: If the store write fails
        """
        if self.store is not None:
            await self.store.insert_story(story)
        if self.quests is not None:
            await self.quests.record_safely("create_story")
        return story
