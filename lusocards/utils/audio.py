"""Audio decoding helpers (pydub containers, raw PCM fallback)."""

import io

import numpy as np
from pydub import AudioSegment

from ..exceptions import MediaResolutionError
from ..models.media import DecodedAudio


def decode_container(raw: bytes) -> DecodedAudio:
    """
    Decode a compressed/container format (mp3, wav, ogg...) via pydub.

    Raises:
        Exception: whatever pydub/ffmpeg raises for unreadable input
    """
    segment = AudioSegment.from_file(io.BytesIO(raw))
    samples = np.array(segment.get_array_of_samples(), dtype=np.float32)
    scale = float(1 << (8 * segment.sample_width - 1))
    return DecodedAudio(
        samples=samples / scale,
        sample_rate=segment.frame_rate,
        channels=segment.channels,
    )


def decode_pcm16(raw: bytes, sample_rate: int) -> DecodedAudio:
    """
    Interpret bytes as mono 16-bit signed little-endian PCM.

    An odd trailing byte is dropped.
    """
    usable = len(raw) - (len(raw) % 2)
    if usable <= 0:
        raise MediaResolutionError("Audio payload is empty")
    pcm = np.frombuffer(raw[:usable], dtype="<i2")
    return DecodedAudio(
        samples=pcm.astype(np.float32) / 32768.0,
        sample_rate=sample_rate,
        channels=1,
    )


def decode_audio(raw: bytes, sample_rate: int) -> DecodedAudio:
    """
    Decode raw bytes into playable samples.

    Tries native container decoding first, then raw PCM at sample_rate.

    Args:
        raw: Audio bytes
        sample_rate: Sample rate assumed for headerless PCM

    Returns:
        DecodedAudio

    Raises:
        MediaResolutionError: If there is nothing to decode
    """
    if not raw:
        raise MediaResolutionError("Audio payload is empty")
    try:
        return decode_container(raw)
    except Exception:
        return decode_pcm16(raw, sample_rate)


def to_audio_segment(audio: DecodedAudio) -> AudioSegment:
    """Convert decoded samples back to a 16-bit pydub segment for playback."""
    pcm = (np.clip(audio.samples, -1.0, 1.0) * 32767).astype("<i2")
    return AudioSegment(
        data=pcm.tobytes(),
        sample_width=2,
        frame_rate=audio.sample_rate,
        channels=audio.channels,
    )
