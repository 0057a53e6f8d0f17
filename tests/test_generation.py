import asyncio

import pytest

from conftest import AUDIO_PAYLOAD, NOW, FakeAudioFetcher, FakeImageFetcher, fake_decoder, fixed_clock, make_card
from lusocards.config import Config
from lusocards.exceptions import GenerationError, PersistenceError
from lusocards.models import Difficulty, Example, VocabularyItem
from lusocards.services import GenerationOrchestrator, MediaCache


def _orchestrator(ai, media, store=None, quests=None):
    return GenerationOrchestrator(ai, media, store=store, quests=quests, clock=fixed_clock)


def test_extract_vocabulary_drops_incomplete_items(ai, media):
    ai.vocabulary = [
        {"word": "gato", "translation": "кот", "context": "O gato dorme."},
        {"word": "", "translation": "пустое"},
        {"word": "cão", "translation": "  "},
        {"word": "pão", "translation": "хлеб"},
    ]

    items = asyncio.run(_orchestrator(ai, media).extract_vocabulary("O gato come pão", 4))

    assert [i.word for i in items] == ["gato", "pão"]
    assert items[1].context == ""
    assert ("extract_vocabulary", 4) in ai.calls


def test_build_card_sets_fresh_srs_state(ai, media, image_fetcher):
    card = asyncio.run(_orchestrator(ai, media).build_card(VocabularyItem("gato", "кот"), "animals", ["zoo"]))

    assert card.original_term == "gato"
    assert card.difficulty is Difficulty.NEW
    assert card.interval == 0
    assert card.ease_factor == 2.5
    assert card.next_review_date == NOW
    assert card.folder_ids == ["animals"]
    assert card.tags == ["zoo"]
    assert len(card.examples) == 4
    assert card.audio_base64 is None
    assert card.image_url == "https://cdn.test/images/gato.png"
    assert image_fetcher.prompts == [f"a picture of gato{Config.IMAGE_STYLE_SUFFIX}"]


def test_build_card_defaults_folder_and_definition(ai, media):
    ai.details["casa"] = {"examples": []}

    card = asyncio.run(_orchestrator(ai, media).build_card(VocabularyItem("casa", "дом"), folder_id=""))

    assert card.folder_ids == ["default"]
    assert card.definition == "Definition unavailable"
    assert card.image_url is None


def test_image_failure_does_not_fail_card(ai, store, player):
    media = MediaCache(store=store, audio_fetcher=FakeAudioFetcher(),
                       image_fetcher=FakeImageFetcher(fail=True), decoder=fake_decoder, player=player)

    card = asyncio.run(_orchestrator(ai, media).build_card(VocabularyItem("mesa", "стол")))

    assert card.image_url is None
    assert card.definition == "definition of mesa"


def test_batch_keeps_partial_results(ai, media):
    words = ["um", "dois", "três", "quatro", "cinco"]
    ai.fail_words = {"três"}
    items = [VocabularyItem(w, w.upper()) for w in words]
    progress = []

    result = asyncio.run(_orchestrator(ai, media).build_cards(
        items, progress_callback=lambda done, total: progress.append((done, total))
    ))

    assert [c.original_term for c in result.successes] == ["um", "dois", "quatro", "cinco"]
    assert result.partial is True
    assert result.failures[0][0].word == "três"
    assert progress[-1] == (5, 5)
    detail_calls = [c[1] for c in ai.calls if c[0] == "generate_card_details"]
    assert detail_calls == words


def test_batch_without_failures_is_not_partial(ai, media):
    result = asyncio.run(_orchestrator(ai, media).build_cards([VocabularyItem("sol", "солнце")]))

    assert result.partial is False
    assert len(result.successes) == 1


def test_enrich_patterns_merges_by_level(ai, media):
    examples = [
        Example("A1", "Eu tenho um gato.", "У меня есть кот."),
        Example("B1", "Se eu tivesse um gato...", "Если бы у меня был кот..."),
    ]
    ai.patterns = [{"level": "B1", "patterns": [{"target": "tivesse", "explanation": "imperfect subjunctive"}]}]

    enriched = asyncio.run(_orchestrator(ai, media).enrich_patterns("gato", examples))

    assert enriched[0] is examples[0]
    assert enriched[1].patterns[0].target == "tivesse"


def test_enrich_patterns_empty_response_returns_examples(ai, media):
    examples = [Example("A1", "Olá.", "Привет.")]

    assert asyncio.run(_orchestrator(ai, media).enrich_patterns("olá", examples)) == examples


def test_ensure_term_audio_saves_payload_on_card(ai, media, store, audio_fetcher):
    card = make_card("c1", "obrigado")

    async def run():
        audio = await _orchestrator(ai, media, store).ensure_term_audio(card)
        await media.drain()
        return audio

    audio = asyncio.run(run())

    assert audio == AUDIO_PAYLOAD
    assert card.audio_base64 == AUDIO_PAYLOAD
    assert len(audio_fetcher.calls) == 1
    assert ("update_flashcard_audio", "c1") in store.writes


def test_ensure_term_audio_upgrades_to_canonical_url(ai, media, store, audio_fetcher):
    card = make_card("c1", "obrigado", audio_base64=AUDIO_PAYLOAD)
    store.global_audio["obrigado"] = "https://cdn.test/audio/obrigado.mp3"

    audio = asyncio.run(_orchestrator(ai, media, store).ensure_term_audio(card))

    assert audio == "https://cdn.test/audio/obrigado.mp3"
    assert card.audio_base64 == audio
    assert audio_fetcher.calls == []


def test_ensure_term_audio_keeps_existing_hint(ai, media, store, audio_fetcher):
    card = make_card("c1", "obrigado", audio_base64=AUDIO_PAYLOAD)

    async def run():
        audio = await _orchestrator(ai, media, store).ensure_term_audio(card)
        await media.drain()
        return audio

    assert asyncio.run(run()) == AUDIO_PAYLOAD
    assert audio_fetcher.calls == []
    assert ("update_flashcard_audio", "c1") not in store.writes


def test_ensure_term_audio_write_failure_is_swallowed(ai, media, store):
    store.fail = True
    card = make_card("c2", "olá")

    async def run():
        audio = await _orchestrator(ai, media, store).ensure_term_audio(card)
        await media.drain()
        return audio

    assert asyncio.run(run()) == AUDIO_PAYLOAD


def test_save_cards_persists_and_records_quest(ai, media, store, quests):
    cards = [make_card("a"), make_card("b")]

    asyncio.run(_orchestrator(ai, media, store, quests).save_cards(cards))

    assert set(store.cards) == {"a", "b"}
    add_quest = next(q for q in store.profile.quests if q.type == "add_cards")
    assert add_quest.progress == 2


def test_save_cards_failure_surfaces(ai, media, store):
    store.fail = True

    with pytest.raises(PersistenceError):
        asyncio.run(_orchestrator(ai, media, store).save_cards([make_card("x")]))


def test_extract_vocabulary_skips_non_object_items(ai, media):
    ai.vocabulary = ["gato", None, {"word": "pão", "translation": "хлеб"}]

    items = asyncio.run(_orchestrator(ai, media).extract_vocabulary("O gato come pão"))

    assert [i.word for i in items] == ["pão"]


@pytest.mark.parametrize("details", [
    {"definition": "x", "examples": ["not an object"]},
    {"definition": "x", "conjugation": "yes"},
    {"definition": "x", "conjugation": {"isVerb": True, "tenses": {"presente": "falo"}}},
])
def test_malformed_details_fail_only_that_card(ai, media, details):
    ai.details["dois"] = details
    items = [VocabularyItem(w, w.upper()) for w in ("um", "dois", "tres")]

    result = asyncio.run(_orchestrator(ai, media).build_cards(items))

    assert [c.original_term for c in result.successes] == ["um", "tres"]
    assert result.failures[0][0].word == "dois"
    assert isinstance(result.failures[0][1], GenerationError)


def test_enrich_patterns_ignores_malformed_entries(ai, media):
    examples = [Example("A1", "Eu falo.", "Я говорю."), Example("A2", "Eu falei.", "Я сказал.")]
    ai.patterns = [
        "A1",
        {"level": "A1", "patterns": "falo"},
        {"level": "A2", "patterns": ["falei", {"target": "falei", "explanation": "preterite"}]},
    ]

    enriched = asyncio.run(_orchestrator(ai, media).enrich_patterns("falar", examples))

    assert enriched[0] is examples[0]
    assert [p.target for p in enriched[1].patterns] == ["falei"]


def test_enrich_card_persists_examples(ai, media, store):
    card = make_card("c1", "gato", examples=[Example("A1", "O gato.", "Кот.")])
    ai.patterns = [{"level": "A1", "patterns": [{"target": "gato", "explanation": "noun"}]}]

    enriched = asyncio.run(_orchestrator(ai, media, store).enrich_card(card))

    assert enriched.examples[0].patterns[0].explanation == "noun"
    assert ("update_flashcard_examples", "c1") in store.writes


def test_enrich_card_without_changes_skips_write(ai, media, store):
    card = make_card("c1", "gato", examples=[Example("A1", "O gato.", "Кот.")])

    asyncio.run(_orchestrator(ai, media, store).enrich_card(card))

    assert ("update_flashcard_examples", "c1") not in store.writes
