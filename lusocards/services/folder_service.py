"""Folder lifecycle: create and delete with card reconciliation."""

import asyncio
import dataclasses
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..exceptions import PersistenceError, ValidationError
from ..models import DEFAULT_FOLDER_ID, Flashcard, Folder
from ..utils.helpers import new_id, now_ms
from ..utils.logger import setup_logger
from .repository import BaseStore

logger = setup_logger(__name__)


@dataclass
class FolderState:
    cards: List[Flashcard]
    folders: List[Folder]


class FolderService:
    """Folder create/delete on top of a store."""

    def __init__(self, store: Optional[BaseStore] = None, clock: Optional[Callable[[], int]] = None):
        self.store = store
        self.clock = clock or now_ms

    async def create_folder(self, name: str, folders: List[Folder]) -> Folder:
        """
        Create a folder.

        Raises:
            ValidationError: Empty or duplicate (case-insensitive) name
            PersistenceError: Store write failed
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required")
        if any(f.name.strip().lower() == name.lower() for f in folders):
            raise ValidationError(f"Folder {name!r} already exists")

        folder = Folder(id=new_id(), name=name, created_at=self.clock())
        if self.store is not None:
            await self.store.insert_folder(folder)
        logger.info(f"Created folder {name!r}")
        return folder

    async def delete_folder(
        self,
        folder_id: str,
        cards: List[Flashcard],
        folders: List[Folder],
        delete_cards: bool = False,
    ) -> FolderState:
        """
        Delete a folder and reconcile its cards.

        Args:
            folder_id: Folder to delete
            cards: Current cards
            folders: Current folders
            delete_cards: Delete the folder's cards instead of unlinking them

        Returns:
            New local state

        Raises:
            ValidationError: On an attempt to delete the default folder
            PersistenceError: If any write failed; `unconfirmed` holds the
                new FolderState
        """
        if folder_id == DEFAULT_FOLDER_ID:
            raise ValidationError("The default folder cannot be deleted")

        remaining_cards: List[Flashcard] = []
        deleted_ids: List[str] = []
        relinked: List[Flashcard] = []

        for card in cards:
            if folder_id not in card.folders:
                remaining_cards.append(card)
            elif delete_cards:
                deleted_ids.append(card.id)
            else:
                folder_ids = [f for f in card.folders if f != folder_id] or [DEFAULT_FOLDER_ID]
                updated = dataclasses.replace(card, folder_ids=folder_ids)
                remaining_cards.append(updated)
                relinked.append(updated)

        state = FolderState(
            cards=remaining_cards,
            folders=[f for f in folders if f.id != folder_id],
        )
        if self.store is None:
            return state

        writes = [self.store.delete_folder(folder_id)]
        if deleted_ids:
            writes.append(self.store.delete_flashcards(deleted_ids))
        writes += [self.store.update_flashcard_folders(c.id, c.folder_ids) for c in relinked]

        outcomes = await asyncio.gather(*writes, return_exceptions=True)
        errors = [o for o in outcomes if isinstance(o, Exception)]
        if errors:
            logger.error(f"Folder delete: {len(errors)}/{len(writes)} writes failed")
            raise PersistenceError(f"Folder deletion not fully saved: {errors[0]}", unconfirmed=state) from errors[0]

        logger.info(f"Deleted folder {folder_id} ({len(deleted_ids)} cards deleted, {len(relinked)} relinked)")
        return state
