import asyncio

import pytest

from conftest import fixed_clock, make_card
from lusocards.exceptions import PersistenceError, ValidationError
from lusocards.models import Folder
from lusocards.services import FolderService, FolderState


@pytest.fixture
def folders():
    return [Folder("default", "Uncategorized"), Folder("f1", "Verbs"), Folder("f2", "Food")]


@pytest.fixture
def cards():
    return [
        make_card("a", folder_ids=["f1"]),
        make_card("b", folder_ids=["f1", "f2"]),
        make_card("c", folder_ids=["f2"]),
    ]


def test_create_folder_persists(store, folders):
    folder = asyncio.run(FolderService(store, clock=fixed_clock).create_folder("  Travel ", folders))

    assert folder.name == "Travel"
    assert store.folders[folder.id] is folder


@pytest.mark.parametrize("name", ["", "   ", "verbs", "FOOD"])
def test_create_folder_rejects_empty_and_duplicates(store, folders, name):
    with pytest.raises(ValidationError):
        asyncio.run(FolderService(store).create_folder(name, folders))
    assert store.writes == []


def test_delete_strips_reference_and_falls_back_to_default(store, folders, cards):
    state = asyncio.run(FolderService(store).delete_folder("f1", cards, folders))

    by_id = {c.id: c for c in state.cards}
    assert by_id["a"].folder_ids == ["default"]
    assert by_id["b"].folder_ids == ["f2"]
    assert by_id["c"].folder_ids == ["f2"]
    assert [f.id for f in state.folders] == ["default", "f2"]
    assert ("delete_folder", "f1") in store.writes


def test_delete_cascades_to_cards(store, folders, cards):
    state = asyncio.run(FolderService(store).delete_folder("f1", cards, folders, delete_cards=True))

    assert [c.id for c in state.cards] == ["c"]
    assert ("delete_flashcards", ["a", "b"]) in store.writes


def test_default_folder_cannot_be_deleted(store, folders, cards):
    with pytest.raises(ValidationError):
        asyncio.run(FolderService(store).delete_folder("default", cards, folders))


def test_delete_failure_carries_unconfirmed_state(store, folders, cards):
    store.fail = True

    with pytest.raises(PersistenceError) as info:
        asyncio.run(FolderService(store).delete_folder("f2", cards, folders))

    state = info.value.unconfirmed
    assert isinstance(state, FolderState)
    assert [f.id for f in state.folders] == ["default", "f1"]
