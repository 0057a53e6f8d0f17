"""
Generation Service - turns raw input into complete flashcards.

Extraction -> card details -> image -> Flashcard with fresh SRS state.
Batches run sequentially to respect provider rate limits.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union

from ..config import Config
from ..exceptions import GenerationError, LusoCardsError, PersistenceError, ValidationError
from ..models import (
    DEFAULT_FOLDER_ID,
    CardDetails,
    Example,
    Flashcard,
    ImageInput,
    MediaSource,
    Pattern,
    VocabularyItem,
)
from ..study.quests import QuestTracker
from ..utils.helpers import new_id, now_ms
from ..utils.logger import setup_logger
from .ai_service import AIService
from .media_service import MediaCache
from .repository import BaseStore

logger = setup_logger(__name__)


@dataclass
class BatchResult:
    """Outcome of a batch build: every item ends up on one side."""
    successes: List[Flashcard] = field(default_factory=list)
    failures: List[Tuple[VocabularyItem, Exception]] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def add_success(self, card: Flashcard) -> "BatchResult":
        return BatchResult(self.successes + [card], self.failures)

    def add_failure(self, item: VocabularyItem, error: Exception) -> "BatchResult":
        return BatchResult(self.successes, self.failures + [(item, error)])


class GenerationOrchestrator:
    """
    High-level card generation.

    Combines the AI service (text), MediaCache (images, audio) and the
    store (persistence).
    """

    def __init__(
        self,
        ai: AIService,
        media: MediaCache,
        store: Optional[BaseStore] = None,
        quests: Optional[QuestTracker] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.ai = ai
        self.media = media
        self.store = store
        self.quests = quests
        self.clock = clock or now_ms

    async def extract_vocabulary(
        self,
        source: Union[str, ImageInput],
        desired_count: int = 5,
    ) -> List[VocabularyItem]:
        """
        Extract learnable words from text or an image.

        Args:
            source: Free text or ImageInput
            desired_count: Number of items to ask for

        Returns:
            Valid vocabulary items (incomplete ones are dropped)

        Raises:
            GenerationError: If the provider output is unparsable
        """
        raw_items = await self.ai.extract_vocabulary(source, desired_count)

        items = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                logger.debug(f"Dropped item: {ValidationError(f'expected an object, got {raw!r}')}")
                continue
            item = VocabularyItem(
                word=str(raw.get("word") or "").strip(),
                translation=str(raw.get("translation") or "").strip(),
                context=str(raw.get("context") or "").strip(),
            )
            if not item.is_valid:
                logger.debug(f"Dropped item: {ValidationError(f'missing word or translation in {raw!r}')}")
                continue
            items.append(item)

        logger.info(f"Extracted {len(items)}/{len(raw_items)} vocabulary items")
        return items

    async def _resolve_image(self, details: CardDetails, word: str) -> Optional[str]:
        if not details.visual_prompt:
            return None
        prompt = f"{details.visual_prompt}{Config.IMAGE_STYLE_SUFFIX}"
        try:
            return await self.media.resolve_image(prompt, word)
        except LusoCardsError as e:
            logger.warning(f"Image for {word!r} failed, continuing without it: {e}")
            return None

    async def build_card(
        self,
        item: VocabularyItem,
        folder_id: str = DEFAULT_FOLDER_ID,
        tags: Optional[List[str]] = None,
    ) -> Flashcard:
        """
        Generate a complete card for one vocabulary item.

        Args:
            item: Word and translation
            folder_id: Folder for the new card
            tags: Optional tags

        Returns:
            New Flashcard (not yet persisted)

        Raises:
            GenerationError: If the provider reply is missing or malformed
        """
        raw = await self.ai.generate_card_details(item.word)
        try:
            details = CardDetails.from_dict(raw)
        except (AttributeError, TypeError, ValueError) as e:
            raise GenerationError(f"Malformed card details for {item.word!r}: {e}") from e
        image_url = await self._resolve_image(details, item.word)
        now = self.clock()

        return Flashcard(
            id=new_id(),
            original_term=item.word,
            translation=item.translation,
            definition=details.definition,
            examples=details.examples,
            conjugation=details.conjugation,
            grammar_notes=details.grammar_notes,
            image_url=image_url,
            image_prompt=details.visual_prompt,
            folder_ids=[folder_id or DEFAULT_FOLDER_ID],
            tags=list(tags or []),
            frequency=details.frequency,
            ease_factor=Config.DEFAULT_EASE_FACTOR,
            next_review_date=now,
            created_at=now,
        )

    async def build_cards(
        self,
        items: List[VocabularyItem],
        folder_id: str = DEFAULT_FOLDER_ID,
        tags: Optional[List[str]] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> BatchResult:
        """
        Build cards one item at a time, keeping partial results.

        Args:
            items: Vocabulary items
            folder_id: Folder for all new cards
            tags: Tags for all new cards
            progress_callback: Called with (done, total) after each item

        Returns:
            BatchResult with successes and (item, error) failures
        """
        result = BatchResult()
        for index, item in enumerate(items, start=1):
            try:
                card = await self.build_card(item, folder_id, tags)
            except LusoCardsError as e:
                logger.error(f"Card for {item.word!r} failed: {e}")
                result = result.add_failure(item, e)
            else:
                result = result.add_success(card)
            if progress_callback:
                progress_callback(index, len(items))

        if result.partial:
            logger.warning(f"Partial batch: {len(result.successes)} built, {len(result.failures)} failed")
        return result

    async def enrich_patterns(self, term: str, examples: List[Example]) -> List[Example]:
        """
        Add grammar pattern annotations to existing examples.

        Examples without a matching level come back unchanged.
        """
        if not examples:
            return examples
        annotated = await self.ai.enrich_card_patterns(term, [e.to_dict() for e in examples])
        if not annotated:
            return examples

        by_level = {}
        for entry in annotated:
            if not isinstance(entry, dict) or not isinstance(entry.get("patterns") or [], list):
                logger.debug(f"Dropped pattern entry: {ValidationError(f'unexpected shape {entry!r}')}")
                continue
            by_level[str(entry.get("level"))] = [
                Pattern.from_dict(p) for p in entry.get("patterns") or [] if isinstance(p, dict)
            ]
        return [
            Example(e.level, e.sentence, e.translation, by_level[e.level]) if e.level in by_level else e
            for e in examples
        ]

    async def enrich_card(self, card: Flashcard) -> Flashcard:
        """
        Annotate a saved card's examples with grammar patterns and persist them.

        Raises:
            PersistenceError: If the store write fails
        """
        examples = await self.enrich_patterns(card.original_term, card.examples)
        if examples == card.examples:
            return card
        card.examples = examples
        if self.store is not None:
            await self.store.update_flashcard_examples(card)
        return card

    async def ensure_term_audio(self, card: Flashcard) -> str:
        """
        Resolve audio for the card's term, saving it on first generation.

        Returns:
            URL or payload now stored on the card
        """
        hint = MediaSource.from_stored(card.audio_base64) if card.audio_base64 else None
        audio = await self.media.get_or_generate_audio(card.original_term, hint)
        if audio != card.audio_base64:
            card.audio_base64 = audio
            if self.store is not None:
                try:
                    await self.store.update_flashcard_audio(card.id, audio)
                except PersistenceError as e:
                    logger.warning(f"Audio for {card.original_term!r} not saved on card: {e}")
        return audio

    async def save_cards(self, cards: List[Flashcard]) -> List[Flashcard]:
        """
        Persist new cards.

        Raises:
            PersistenceError: If the store write fails
        """
        if not cards:
            return cards
        if self.store is not None:
            await self.store.insert_flashcards(cards)
        logger.info(f"Saved {len(cards)} cards")
        if self.quests is not None:
            await self.quests.record_safely("add_cards", len(cards))
        return cards
