"""
Pronunciation scoring and the record -> transcribe -> score pipeline.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Protocol

from Levenshtein import distance as lev_distance

from ..config import Config
from ..exceptions import RecordingError, RecordingTooShortError, SpeechNotRecognizedError
from ..models import PronunciationScore, TranscriptionResult
from ..utils.helpers import round_half_up
from ..utils.logger import setup_logger
from ..utils.parsing import TextParser

logger = setup_logger(__name__)

# Score thresholds (inclusive lower bounds)
EXCELLENT_SCORE = 85
GOOD_SCORE = 65
PARTIAL_SCORE = 45

MIN_HEARD_CHARS = 3


def similarity(expected: str, heard: str) -> int:
    """
    Edit-distance similarity of two normalized strings as 0-100.

    Identical strings score 100; an empty side scores 0.
    """
    if expected == heard:
        return 100 if expected else 0
    if not expected or not heard:
        return 0
    longest = max(len(expected), len(heard))
    return round_half_up((1 - lev_distance(expected, heard) / longest) * 100)


class PronunciationScorer:
    """Compares what the learner was asked to say with what was heard."""

    def score(self, expected: str, heard: str) -> PronunciationScore:
        """
        Score a spoken attempt.

        Args:
            expected: Target phrase
            heard: Transcript of the attempt

        Returns:
            PronunciationScore with word diff and feedback
        """
        norm_expected = TextParser.normalize_for_comparison(expected)
        norm_heard = TextParser.normalize_for_comparison(heard)

        expected_words = TextParser.tokenize(norm_expected)
        heard_words = TextParser.tokenize(norm_heard)
        expected_set = set(expected_words)
        heard_set = set(heard_words)

        missing = [w for w in expected_words if w not in heard_set]
        extra = [w for w in heard_words if w not in expected_set]
        matched = [w for w in expected_words if w in heard_set]

        value = similarity(norm_expected, norm_heard)

        return PronunciationScore(
            is_correct=value >= GOOD_SCORE,
            score=value,
            expected=expected,
            heard=heard,
            feedback=self.feedback(value, heard, missing, extra),
            missing_words=missing,
            extra_words=extra,
            matched_words=matched,
        )

    @staticmethod
    def feedback(value: int, heard: str, missing: List[str], extra: List[str]) -> str:
        if value >= EXCELLENT_SCORE:
            return "Excellent! Your pronunciation is spot on."
        if value >= GOOD_SCORE:
            if missing:
                return f"Good job! Watch these words: {', '.join(missing[:2])}."
            return "Good job! Almost perfect."
        if value >= PARTIAL_SCORE:
            if missing:
                return f"Not bad. Try again and pay attention to: {', '.join(missing[:3])}."
            if extra:
                return "Not bad. Try speaking a little slower."
            return "Not bad. Give it another try."
        if len(heard.strip()) < MIN_HEARD_CHARS:
            return "I didn't hear you. Please speak closer to the microphone."
        return "Let's try again. Listen to the example and repeat."


class Transcriber(Protocol):
    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        ...


class MicrophoneSource(ABC):
    """
    Audio capture device.

    open() raises PermissionError when access is denied and OSError
    when no device is available.
    """

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    def chunks(self) -> AsyncIterator[bytes]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class RecordingSession:
    """
    One learner-controlled recording, evaluated on stop.

    The recording stays in `recording` after evaluation for playback,
    and the session always ends up idle again.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        scorer: Optional[PronunciationScorer] = None,
        min_bytes: Optional[int] = None,
    ):
        self.transcriber = transcriber
        self.scorer = scorer or PronunciationScorer()
        self.min_bytes = min_bytes or Config.MIN_RECORDING_BYTES
        self.recording: bytes = b""
        self.is_recording = False
        self._chunks: List[bytes] = []
        self._microphone: Optional[MicrophoneSource] = None

    async def start(self, microphone: MicrophoneSource) -> None:
        """
        Open the microphone and begin buffering.

        Raises:
            RecordingError: If the microphone is denied or missing
        """
        try:
            await microphone.open()
        except PermissionError as e:
            raise RecordingError("Microphone access denied. Allow microphone access and try again.") from e
        except OSError as e:
            raise RecordingError("Microphone not found. Connect a microphone and try again.") from e

        self._microphone = microphone
        self._chunks = []
        self.recording = b""
        self.is_recording = True

    def add_chunk(self, chunk: bytes) -> None:
        if self.is_recording and chunk:
            self._chunks.append(chunk)

    async def capture(self) -> None:
        """Buffer chunks from the open microphone until it stops yielding."""
        if self._microphone is None:
            return
        async for chunk in self._microphone.chunks():
            if not self.is_recording:
                break
            self.add_chunk(chunk)

    async def _stop(self) -> bytes:
        self.is_recording = False
        self.recording = b"".join(self._chunks)
        self._chunks = []
        if self._microphone is not None:
            microphone, self._microphone = self._microphone, None
            await microphone.close()
        return self.recording

    async def stop_and_evaluate(self, expected: str) -> PronunciationScore:
        """
        Stop recording, transcribe the clip and score it.

        Raises:
            RecordingTooShortError: Clip below the minimum size
            SpeechNotRecognizedError: Nothing was recognized
            CollaboratorError: Transcription call failed
        """
        audio = await self._stop()
        if len(audio) < self.min_bytes:
            raise RecordingTooShortError("Recording is too short. Hold the button while speaking.")

        result = await self.transcriber.transcribe(audio)
        if not result.transcript.strip():
            raise SpeechNotRecognizedError("Speech not recognized. Try again a bit louder.")

        logger.debug(f"Heard {result.transcript!r} (confidence {result.confidence:.2f})")
        return self.scorer.score(expected, result.transcript)
