"""
SRS Scheduler - review outcomes and study queue construction.

Simplified SM-2: success grows the interval by the card's ease factor,
failure resets it to one day. The ease factor itself never changes.
"""

import dataclasses
import random
from typing import Callable, Iterable, Iterator, List, Optional

from ..config import Config
from ..models import Difficulty, Flashcard
from ..services.repository import BaseStore
from ..utils.frequency import normalize_frequency
from ..utils.helpers import MS_PER_DAY, now_ms, round_half_up
from ..utils.logger import setup_logger
from .quests import QuestTracker

logger = setup_logger(__name__)


class StudyQueue:
    """Ordered cards for one study session."""

    def __init__(self, cards: Optional[Iterable[Flashcard]] = None):
        self.cards: List[Flashcard] = list(cards or [])

    @property
    def is_empty(self) -> bool:
        return not self.cards

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Flashcard]:
        return iter(self.cards)

    def __getitem__(self, index: int) -> Flashcard:
        return self.cards[index]


def next_interval(card: Flashcard, success: bool) -> int:
    """Interval in days after a review."""
    if not success:
        return 1
    if card.interval == 0:
        return 1
    return round_half_up(card.interval * card.ease_factor)


class SrsScheduler:
    """Spaced repetition scheduling and queue policies."""

    def __init__(
        self,
        store: Optional[BaseStore] = None,
        quests: Optional[QuestTracker] = None,
        clock: Optional[Callable[[], int]] = None,
        new_card_limit: Optional[int] = None,
    ):
        self.store = store
        self.quests = quests
        self.clock = clock or now_ms
        self.new_card_limit = new_card_limit or Config.NEW_CARD_FALLBACK_LIMIT

    def review(self, card: Flashcard, success: bool, now: Optional[int] = None) -> Flashcard:
        """
        Apply a review outcome.

        Args:
            card: Card being reviewed
            success: Whether the learner recalled it
            now: Review time in epoch ms (defaults to clock)

        Returns:
            New card with updated SRS fields; the input is not modified
        """
        now = self.clock() if now is None else now
        interval = next_interval(card, success)
        return dataclasses.replace(
            card,
            interval=interval,
            next_review_date=now + interval * MS_PER_DAY,
            difficulty=Difficulty.EASY if success else Difficulty.HARD,
        )

    async def record_review(self, card: Flashcard, success: bool, now: Optional[int] = None) -> Flashcard:
        """
        Review a card and persist the result.

        Raises:
            PersistenceError: If the SRS update could not be saved
        """
        updated = self.review(card, success, now)
        if self.store is not None:
            await self.store.update_flashcard_srs(updated)
        logger.debug(f"Reviewed {card.original_term!r}: interval {card.interval} -> {updated.interval}")
        if success and self.quests is not None:
            await self.quests.record_safely("review_cards")
        return updated

    # ==================== Queue policies ====================

    def due_queue(self, cards: List[Flashcard], now: Optional[int] = None) -> StudyQueue:
        """Overdue cards first; new cards when nothing is due."""
        now = self.clock() if now is None else now
        due = sorted((c for c in cards if c.is_due(now)), key=lambda c: c.next_review_date)
        if due:
            return StudyQueue(due)
        return StudyQueue([c for c in cards if c.is_new][:self.new_card_limit])

    def frequency_queue(
        self,
        cards: List[Flashcard],
        buckets: Iterable[str],
        rng: Optional[random.Random] = None,
    ) -> StudyQueue:
        """Cards in the chosen frequency buckets, shuffled."""
        wanted = set(buckets)
        selected = [c for c in cards if normalize_frequency(c.frequency) in wanted]
        (rng or random).shuffle(selected)
        return StudyQueue(selected)

    def single_card_queue(self, cards: List[Flashcard], card_id: str) -> StudyQueue:
        return StudyQueue([c for c in cards if c.id == card_id][:1])

    def session(self, queue: StudyQueue) -> "StudySession":
        return StudySession(self, queue)


class StudySession:
    """Walks a queue, recording each answer."""

    def __init__(self, scheduler: SrsScheduler, queue: StudyQueue):
        self.scheduler = scheduler
        self.queue = queue
        self.position = 0
        self.reviewed: List[Flashcard] = []

    @property
    def current(self) -> Optional[Flashcard]:
        if self.finished:
            return None
        return self.queue[self.position]

    @property
    def finished(self) -> bool:
        return self.position >= len(self.queue)

    @property
    def reviewed_count(self) -> int:
        return len(self.reviewed)

    async def answer(self, success: bool) -> Optional[Flashcard]:
        """Record the answer for the current card and advance."""
        card = self.current
        if card is None:
            return None
        updated = await self.scheduler.record_review(card, success)
        self.reviewed.append(updated)
        self.position += 1
        return updated


def learned_cards(cards: List[Flashcard]) -> List[Flashcard]:
    return [c for c in cards if c.interval > 0]


def learning_cards(cards: List[Flashcard]) -> List[Flashcard]:
    return [c for c in cards if c.interval == 0]
