import asyncio

import pytest

from conftest import FakeTranscriber
from lusocards.exceptions import (
    CollaboratorError,
    RecordingError,
    RecordingTooShortError,
    SpeechNotRecognizedError,
)
from lusocards.study import MicrophoneSource, PronunciationScorer, RecordingSession
from lusocards.study.pronunciation import similarity


class FakeMicrophone(MicrophoneSource):
    def __init__(self, chunks=None, error=None, close_error=None):
        self._data = list(chunks or [])
        self.error = error
        self.close_error = close_error
        self.closed = False

    async def open(self):
        if self.error is not None:
            raise self.error

    async def chunks(self):
        for chunk in self._data:
            yield chunk

    async def close(self):
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def scorer():
    return PronunciationScorer()


def test_identical_phrase_scores_100(scorer):
    result = scorer.score("Bom dia", "Bom dia")

    assert result.score == 100
    assert result.is_correct
    assert result.matched_words == ["bom", "dia"]


def test_normalization_ignores_case_accents_and_punctuation(scorer):
    result = scorer.score("Não, obrigado!", "nao obrigado")

    assert result.score == 100
    assert result.missing_words == []


def test_empty_heard_scores_zero_with_didnt_hear_feedback(scorer):
    result = scorer.score("Bom dia", "")

    assert result.score == 0
    assert not result.is_correct
    assert "didn't hear" in result.feedback


def test_similarity_is_symmetric():
    assert similarity("bom dia", "bon dias") == similarity("bon dias", "bom dia")
    assert similarity("", "") == 0


def test_word_diff(scorer):
    result = scorer.score("eu gosto de café", "eu gosto muito de chá")

    assert result.missing_words == ["cafe"]
    assert result.extra_words == ["muito", "cha"]
    assert result.matched_words == ["eu", "gosto", "de"]


def test_good_tier_names_two_missing_words(scorer):
    result = scorer.score("o gato preto dorme bem", "o gato preto dorme")

    assert 65 <= result.score < 85
    assert result.is_correct
    assert "bem" in result.feedback


def test_partial_tier_with_only_extra_words_suggests_slowing_down(scorer):
    result = scorer.score("bom dia", "bom dia sim")

    assert 45 <= result.score < 65
    assert not result.is_correct
    assert "slower" in result.feedback


def test_low_tier_generic_retry(scorer):
    result = scorer.score("obrigado", "xyzwvq")

    assert result.score < 45
    assert "didn't hear" not in result.feedback


def test_recording_session_scores_attempt():
    transcriber = FakeTranscriber("bom dia")
    session = RecordingSession(transcriber, min_bytes=10)
    microphone = FakeMicrophone([b"\x00" * 8, b"\x01" * 8])

    async def run():
        await session.start(microphone)
        await session.capture()
        return await session.stop_and_evaluate("Bom dia!")

    result = asyncio.run(run())

    assert result.score == 100
    assert transcriber.received == [b"\x00" * 8 + b"\x01" * 8]
    assert session.recording == transcriber.received[0]
    assert not session.is_recording
    assert microphone.closed


def test_short_clip_is_rejected_before_transcription():
    transcriber = FakeTranscriber("bom dia")
    session = RecordingSession(transcriber)

    async def run():
        await session.start(FakeMicrophone())
        session.add_chunk(b"\x00" * 999)
        await session.stop_and_evaluate("bom dia")

    with pytest.raises(RecordingTooShortError):
        asyncio.run(run())
    assert transcriber.received == []
    assert len(session.recording) == 999


def test_empty_transcript_is_not_recognized():
    session = RecordingSession(FakeTranscriber(""), min_bytes=1)

    async def run():
        await session.start(FakeMicrophone())
        session.add_chunk(b"abc")
        await session.stop_and_evaluate("olá")

    with pytest.raises(SpeechNotRecognizedError):
        asyncio.run(run())
    assert not session.is_recording


def test_recording_kept_after_transcription_failure():
    session = RecordingSession(FakeTranscriber(error=CollaboratorError("boom")), min_bytes=1)

    async def run():
        await session.start(FakeMicrophone())
        session.add_chunk(b"abcd")
        await session.stop_and_evaluate("olá")

    with pytest.raises(CollaboratorError):
        asyncio.run(run())
    assert session.recording == b"abcd"
    assert not session.is_recording


@pytest.mark.parametrize("error, message", [
    (PermissionError("denied"), "denied"),
    (FileNotFoundError("no device"), "not found"),
])
def test_microphone_errors_map_to_recording_error(error, message):
    session = RecordingSession(FakeTranscriber())

    with pytest.raises(RecordingError, match=message):
        asyncio.run(session.start(FakeMicrophone(error=error)))
    assert not session.is_recording


def test_recording_kept_when_microphone_close_fails():
    session = RecordingSession(FakeTranscriber("bom dia"), min_bytes=1)

    async def run():
        await session.start(FakeMicrophone(close_error=OSError("device vanished")))
        session.add_chunk(b"abcd")
        await session.stop_and_evaluate("bom dia")

    with pytest.raises(OSError, match="device vanished"):
        asyncio.run(run())
    assert session.recording == b"abcd"
    assert not session.is_recording
