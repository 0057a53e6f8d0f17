"""
Smart Sort - AI-suggested folder placement for uncategorized cards.
"""

import asyncio
import dataclasses
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..exceptions import PersistenceError
from ..models import DEFAULT_FOLDER_ID, Flashcard, Folder, SortSuggestion
from ..utils.helpers import new_id, now_ms
from ..utils.logger import setup_logger
from .ai_service import AIService
from .repository import BaseStore

logger = setup_logger(__name__)

NEW_FOLDER_MARKER = "NEW_FOLDER"
DEFAULT_NEW_FOLDER_NAME = "New folder"


@dataclass
class SortResult:
    """Cards and folders after applying suggestions."""
    cards: List[Flashcard]
    folders: List[Folder]
    created_folders: List[Folder] = dataclasses.field(default_factory=list)
    moved_card_ids: List[str] = dataclasses.field(default_factory=list)


def unsorted_cards(cards: List[Flashcard]) -> List[Flashcard]:
    """Cards that live only in the default folder."""
    return [c for c in cards if c.folders == [DEFAULT_FOLDER_ID]]


def _is_create(suggestion: SortSuggestion) -> bool:
    return suggestion.action == "create" or suggestion.target_folder_id == NEW_FOLDER_MARKER


class SmartSortAdvisor:
    """Asks the AI for clusters and applies the accepted ones."""

    def __init__(
        self,
        ai: AIService,
        store: Optional[BaseStore] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.ai = ai
        self.store = store
        self.clock = clock or now_ms

    async def suggest(self, cards: List[Flashcard], folders: List[Folder]) -> List[SortSuggestion]:
        """
        Get folder suggestions for cards.

        Args:
            cards: Candidate cards (usually unsorted_cards())
            folders: Existing folders

        Returns:
            Suggestions; empty without calling the AI when there are no cards
        """
        if not cards:
            return []

        simple_cards = [{"id": c.id, "term": c.original_term} for c in cards]
        simple_folders = [{"id": f.id, "name": f.name} for f in folders if f.id != DEFAULT_FOLDER_ID]
        raw = await self.ai.suggest_smart_sorting(simple_cards, simple_folders)
        suggestions = [SortSuggestion.from_dict(r) for r in raw if isinstance(r, dict)]
        logger.info(f"Smart sort: {len(suggestions)} suggestions for {len(cards)} cards")
        return suggestions

    def _target_folder(self, suggestion: SortSuggestion, folders: List[Folder]) -> tuple:
        """Returns (folder, created)."""
        if not _is_create(suggestion):
            for folder in folders:
                if folder.id == suggestion.target_folder_id:
                    return folder, False
            return Folder(id=suggestion.target_folder_id, name=suggestion.target_folder_id), False

        name = (suggestion.suggested_folder_name or "").strip() or DEFAULT_NEW_FOLDER_NAME
        for folder in folders:
            if folder.name.strip().lower() == name.lower():
                return folder, False
        return Folder(id=new_id(), name=name, created_at=self.clock()), True

    def compute(
        self,
        suggestions: List[SortSuggestion],
        selected_card_ids: List[str],
        cards: List[Flashcard],
        folders: List[Folder],
    ) -> SortResult:
        """Apply suggestions to local state without touching the store."""
        selected = set(selected_card_ids)
        folders = list(folders)
        by_id: Dict[str, Flashcard] = {c.id: c for c in cards}
        created: List[Folder] = []
        moved: List[str] = []

        for suggestion in suggestions:
            card_ids = [cid for cid in suggestion.card_ids if cid in selected and cid in by_id]
            if not card_ids:
                continue

            folder, is_new = self._target_folder(suggestion, folders)
            if is_new:
                folders.append(folder)
                created.append(folder)

            for card_id in card_ids:
                card = by_id[card_id]
                folder_ids = [f for f in card.folders if f != DEFAULT_FOLDER_ID]
                if folder.id not in folder_ids:
                    folder_ids.append(folder.id)
                by_id[card_id] = dataclasses.replace(card, folder_ids=folder_ids)
                if card_id not in moved:
                    moved.append(card_id)

        return SortResult(
            cards=[by_id[c.id] for c in cards],
            folders=folders,
            created_folders=created,
            moved_card_ids=moved,
        )

    async def apply(
        self,
        suggestions: List[SortSuggestion],
        selected_card_ids: List[str],
        cards: List[Flashcard],
        folders: List[Folder],
    ) -> SortResult:
        """
        Apply accepted suggestions and persist them.

        Raises:
            PersistenceError: If any write failed; `unconfirmed` holds the
                computed SortResult
        """
        result = self.compute(suggestions, selected_card_ids, cards, folders)
        if self.store is None:
            return result

        by_id = {c.id: c for c in result.cards}
        writes = [self.store.insert_folder(f) for f in result.created_folders]
        writes += [self.store.update_flashcard_folders(cid, by_id[cid].folder_ids) for cid in result.moved_card_ids]

        outcomes = await asyncio.gather(*writes, return_exceptions=True)
        errors = [o for o in outcomes if isinstance(o, Exception)]
        if errors:
            logger.error(f"Smart sort: {len(errors)}/{len(writes)} writes failed")
            raise PersistenceError(f"Smart sort not fully saved: {errors[0]}", unconfirmed=result) from errors[0]

        logger.info(f"Smart sort applied: {len(result.moved_card_ids)} cards, {len(result.created_folders)} new folders")
        return result
