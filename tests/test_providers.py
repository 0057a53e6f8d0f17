import asyncio
import base64

import pytest

from lusocards.exceptions import GenerationError
from lusocards.fetchers import (
    EdgeTTSAudioFetcher,
    ElevenLabsAudioFetcher,
    FetcherFactory,
    GoogleSpeechTranscriber,
    detect_image_format,
)
from lusocards.fetchers.speech import parse_recognize_response
from lusocards.models import ImageInput, MediaSource, SourceKind
from lusocards.services.ai_service import (
    AIConfig,
    AIService,
    BaseAIProvider,
    extract_gemini_text,
    parse_json_response,
)
from lusocards.utils import TextParser


class _ScriptedProvider(BaseAIProvider):
    def __init__(self, reply):
        super().__init__(AIConfig(api_key="test"))
        self.reply = reply
        self.requests = []

    async def complete(self, prompt, system_prompt=None, schema=None, image=None):
        self.requests.append((prompt, schema, image))
        return self.reply


def _service(reply):
    service = AIService(AIConfig(api_key="test"))
    service._provider = _ScriptedProvider(reply)
    return service


def test_parse_json_response_tolerates_code_fences():
    assert parse_json_response('```json\n{"pt": "Olá"}\n```') == {"pt": "Olá"}


def test_parse_json_response_unwraps_single_list():
    assert parse_json_response('{"items": [{"word": "gato"}]}', expect_list=True) == [{"word": "gato"}]


@pytest.mark.parametrize("text, expect_list", [
    ("not json", False),
    ('[1, 2]', False),
    ('{"a": 1}', True),
])
def test_parse_json_response_rejects_bad_shapes(text, expect_list):
    with pytest.raises(GenerationError):
        parse_json_response(text, expect_list=expect_list)


def test_extract_gemini_text_joins_parts():
    data = {"candidates": [{"content": {"parts": [{"text": "[1,"}, {"text": "2]"}]}}]}

    assert extract_gemini_text(data) == "[1,2]"
    assert extract_gemini_text({}) == ""


def test_extract_vocabulary_with_image_sends_image_part():
    service = _service('[{"word": "gato", "translation": "кот", "context": ""}]')
    image = ImageInput("aGVsbG8=", "image/png")

    items = asyncio.run(service.extract_vocabulary(image, count=3))

    prompt, schema, sent_image = service._provider.requests[0]
    assert items[0]["word"] == "gato"
    assert "exactly 3" in prompt
    assert sent_image is image
    assert schema["type"] == "ARRAY"


def test_extract_vocabulary_empty_reply_raises():
    with pytest.raises(GenerationError):
        asyncio.run(_service("  ").extract_vocabulary("texto"))


def test_story_requires_portuguese_text():
    with pytest.raises(GenerationError):
        asyncio.run(_service('{"ru": "только перевод"}').generate_story(["gato"]))


def test_enrich_patterns_empty_reply_is_empty_list():
    assert asyncio.run(_service("").enrich_card_patterns("gato", [])) == []


def test_elevenlabs_payload_per_mode():
    fetcher = ElevenLabsAudioFetcher(api_key="k")

    card = fetcher.build_payload("olá", "card")["voice_settings"]
    story = fetcher.build_payload("olá", "story")["voice_settings"]

    assert (card["stability"], card["speed"]) == (0.75, 0.9)
    assert (story["stability"], story["speed"]) == (0.5, 1.0)
    assert card["similarity_boost"] == 0.75


def test_speech_request_settings():
    request = GoogleSpeechTranscriber(api_key="k").build_request(b"abc")

    assert request["config"]["encoding"] == "WEBM_OPUS"
    assert request["config"]["sampleRateHertz"] == 48000
    assert request["config"]["languageCode"] == "pt-PT"
    assert request["config"]["enableWordConfidence"] is True
    assert base64.b64decode(request["audio"]["content"]) == b"abc"


def test_parse_recognize_response():
    data = {"results": [{"alternatives": [{
        "transcript": "bom dia",
        "confidence": 0.93,
        "words": [{"word": "bom", "confidence": 0.9}, {"word": "dia", "confidence": 0.95}],
    }]}]}

    result = parse_recognize_response(data)

    assert result.transcript == "bom dia"
    assert result.words == [("bom", 0.9), ("dia", 0.95)]
    assert parse_recognize_response({}).transcript == ""


@pytest.mark.parametrize("content, fmt", [
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff\xe0", "jpeg"),
    (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "webp"),
    (b"<html>", None),
])
def test_detect_image_format(content, fmt):
    assert detect_image_format(content) == fmt


def test_factory_creates_registered_providers():
    assert isinstance(FetcherFactory.create("audio", "edge_tts"), EdgeTTSAudioFetcher)
    assert set(FetcherFactory.get_available_providers("image")) >= {"gemini", "pollinations"}
    with pytest.raises(ValueError):
        FetcherFactory.create("audio", "nope")


@pytest.mark.parametrize("value, kind", [
    ("https://cdn.test/a.mp3", SourceKind.URL),
    ("file:///tmp/a.mp3", SourceKind.URL),
    ("data:audio/mpeg;base64,AAAA", SourceKind.INLINE),
    ("SUQzBAAAAAAA", SourceKind.INLINE),
])
def test_media_source_from_stored(value, kind):
    assert MediaSource.from_stored(value).kind is kind


def test_text_parser_helpers():
    assert TextParser.normalize_key("  Bom Dia ") == "bom dia"
    assert TextParser.normalize_for_comparison("Olá, João!") == "ola joao"
    assert TextParser.safe_filename("O Coração!") == "o-coracao"
    assert TextParser.safe_filename("!!!") == "file"
    assert TextParser.strip_data_uri("data:image/png;base64,AB CD") == "ABCD"
    assert TextParser.clean_for_tts("<b>1. Olá</b> &amp; adeus") == "Olá & adeus"


def test_factory_default_follows_config(monkeypatch):
    from lusocards.config import Config

    monkeypatch.setattr(Config, "AUDIO_PROVIDER", "edge_tts")

    assert isinstance(FetcherFactory.create_default("audio"), EdgeTTSAudioFetcher)
    with pytest.raises(ValueError):
        FetcherFactory.create_default("video")
