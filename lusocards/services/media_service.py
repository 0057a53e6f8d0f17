"""
Media Service - Multi-tier media cache.

Resolves spoken text to playable audio and words to displayable images,
avoiding duplicate generation within a session (request coalescing) and
across users (global persistent cache). Uses FetcherFactory for provider
abstraction.
"""

import asyncio
import base64
import binascii
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from pydub.playback import play as pydub_play

from ..config import Config
from ..exceptions import MediaResolutionError, PersistenceError
from ..fetchers import BaseFetcher, FetcherFactory, RemoteFetcher
from ..models import DecodedAudio, MediaSource, SourceKind
from ..utils.audio import decode_audio, to_audio_segment
from ..utils.logger import setup_logger
from ..utils.parsing import TextParser
from .repository import BaseStore

logger = setup_logger(__name__)

Decoder = Callable[[bytes, int], DecodedAudio]


class AudioPlayer(ABC):
    """Output device for decoded audio."""

    @abstractmethod
    async def play(self, audio: DecodedAudio, rate: float = 1.0) -> None:
        pass


class PydubPlayer(AudioPlayer):
    """Play through pydub.playback in a worker thread."""

    _executor = ThreadPoolExecutor(max_workers=1)

    async def play(self, audio: DecodedAudio, rate: float = 1.0) -> None:
        segment = to_audio_segment(audio)
        if rate and rate != 1.0:
            # Resample by relabeling the frame rate, then restore it for the device
            segment = segment._spawn(
                segment.raw_data,
                overrides={"frame_rate": int(segment.frame_rate * rate)},
            ).set_frame_rate(segment.frame_rate)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, pydub_play, segment)


class MediaCache:
    """
    Service for resolving and caching audio and images.

    Tiers, in priority order: decoded buffers (audio only), global
    persistent cache, caller hint, in-process string cache, generation.
    """

    # Thread pool for decoding
    _executor = ThreadPoolExecutor(max_workers=2)

    def __init__(
        self,
        store: Optional[BaseStore] = None,
        audio_fetcher: Optional[BaseFetcher] = None,
        image_fetcher: Optional[BaseFetcher] = None,
        remote_fetcher: Optional[RemoteFetcher] = None,
        decoder: Optional[Decoder] = None,
        player: Optional[AudioPlayer] = None,
        sample_rate: Optional[int] = None,
        payload_min_length: Optional[int] = None,
    ):
        """
        Initialize media cache.

        Args:
            store: Global cache backend (None disables the persistent tier)
            audio_fetcher: Speech synthesis fetcher (defaults to Config.AUDIO_PROVIDER)
            image_fetcher: Image generation fetcher (defaults to Config.IMAGE_PROVIDER)
            remote_fetcher: Downloader for stored URLs
            decoder: Callable turning raw bytes into DecodedAudio
            player: Playback device (defaults to PydubPlayer)
            sample_rate: Sample rate assumed for headerless PCM
            payload_min_length: Minimum length of a usable inline hint
        """
        self.store = store
        self._audio_fetcher = audio_fetcher
        self._image_fetcher = image_fetcher
        self._remote_fetcher = remote_fetcher
        self._owned: List[BaseFetcher] = []

        self._decoder = decoder or decode_audio
        self.player = player or PydubPlayer()
        self.sample_rate = sample_rate or Config.PCM_SAMPLE_RATE
        self.payload_min_length = payload_min_length or Config.PAYLOAD_MIN_LENGTH

        # Кеші
        self._buffers: Dict[str, DecodedAudio] = {}
        self._strings: Dict[str, str] = {}
        self._images: Dict[str, str] = {}

        # In-flight work, one task per key
        self._pending: Dict[str, asyncio.Task] = {}
        self._source_pending: Dict[str, asyncio.Task] = {}
        self._image_pending: Dict[str, asyncio.Task] = {}

        self._background: Set[asyncio.Task] = set()

    # ==================== Fetchers ====================

    @property
    def audio_fetcher(self) -> BaseFetcher:
        """Lazy-load audio fetcher."""
        if self._audio_fetcher is None:
            self._audio_fetcher = FetcherFactory.create_default("audio")
            self._owned.append(self._audio_fetcher)
        return self._audio_fetcher

    @property
    def image_fetcher(self) -> BaseFetcher:
        """Lazy-load image fetcher."""
        if self._image_fetcher is None:
            self._image_fetcher = FetcherFactory.create_default("image")
            self._owned.append(self._image_fetcher)
        return self._image_fetcher

    @property
    def remote_fetcher(self) -> RemoteFetcher:
        if self._remote_fetcher is None:
            self._remote_fetcher = RemoteFetcher()
            self._owned.append(self._remote_fetcher)
        return self._remote_fetcher

    # ==================== Lifecycle ====================

    async def drain(self) -> None:
        """Wait for outstanding background tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        """Drain background work, then close owned fetchers."""
        await self.drain()
        for fetcher in self._owned:
            await fetcher.close()
        self._owned.clear()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def stats(self) -> Dict[str, int]:
        """Current cache and task sizes."""
        return {
            "buffers": len(self._buffers),
            "strings": len(self._strings),
            "images": len(self._images),
            "pending": len(self._pending) + len(self._source_pending) + len(self._image_pending),
            "background": len(self._background),
        }

    # ==================== Task plumbing ====================

    async def _coalesce(
        self,
        pending: Dict[str, asyncio.Task],
        key: str,
        factory: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Join the in-flight task for key, or start one."""
        task = pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            pending[key] = task
            task.add_done_callback(partial(self._clear_pending, pending, key))
        return await asyncio.shield(task)

    @staticmethod
    def _clear_pending(pending: Dict[str, asyncio.Task], key: str, task: asyncio.Task) -> None:
        if pending.get(key) is task:
            del pending[key]

    def _spawn_background(self, coro: Awaitable[Any], label: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(partial(self._on_background_done, label))
        return task

    def _on_background_done(self, label: str, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Background task failed ({label}): {error}")

    # ==================== Audio ====================

    def _is_meaningful(self, hint: MediaSource) -> bool:
        if hint.kind is SourceKind.URL:
            return bool(hint.value)
        if hint.kind is SourceKind.INLINE:
            return len(hint.value) > self.payload_min_length
        return False

    async def _find_global_audio(self, text: str) -> Optional[str]:
        if self.store is None:
            return None
        try:
            return await self.store.find_global_audio(text)
        except PersistenceError as e:
            logger.debug(f"Global audio lookup failed for {text[:30]!r}: {e}")
            return None

    async def _resolve_source(self, text: str, hint: Optional[MediaSource], mode: str) -> str:
        url = await self._find_global_audio(text)
        if url:
            self._strings[text] = url
            return url

        if hint is not None and self._is_meaningful(hint):
            if hint.kind is SourceKind.INLINE and self.store is not None:
                self._spawn_background(
                    self.store.save_global_audio(text, hint.value),
                    f"share audio {text[:30]!r}",
                )
            self._strings[text] = hint.value
            return hint.value

        cached = self._strings.get(text)
        if cached:
            return cached

        payload = await self.audio_fetcher.fetch(text, mode=mode)
        self._strings[text] = payload
        if self.store is not None:
            self._spawn_background(
                self.store.save_global_audio(text, payload),
                f"save audio {text[:30]!r}",
            )
        return payload

    async def get_or_generate_audio(
        self,
        text: str,
        hint: Optional[MediaSource] = None,
        mode: str = "card",
    ) -> str:
        """
        Resolve audio for text to a storable string without decoding.

        Args:
            text: Spoken text
            hint: Previously stored payload or URL for this text
            mode: Voice mode ("card" or "story")

        Returns:
            URL or base64 payload suitable for saving on a card
        """
        return await self._coalesce(
            self._source_pending, text, lambda: self._resolve_source(text, hint, mode)
        )

    async def _read_bytes(self, source: MediaSource) -> bytes:
        if source.kind is SourceKind.URL:
            return await self.remote_fetcher.fetch_bytes(source.value)
        if source.kind is SourceKind.INLINE:
            try:
                return base64.b64decode(TextParser.strip_data_uri(source.value), validate=True)
            except (binascii.Error, ValueError) as e:
                raise MediaResolutionError("Inline audio payload is not valid base64") from e
        raise MediaResolutionError(f"Cannot read bytes from a {source.kind.value} source")

    async def _decode(self, source: MediaSource) -> DecodedAudio:
        raw = await self._read_bytes(source)
        if not raw:
            raise MediaResolutionError("Audio payload is empty")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._decoder, raw, self.sample_rate)

    async def _resolve_audio(self, text: str, hint: Optional[MediaSource], mode: str) -> DecodedAudio:
        stored = await self.get_or_generate_audio(text, hint, mode)
        audio = await self._decode(MediaSource.from_stored(stored))
        self._buffers[text] = audio
        return audio

    async def resolve_audio(
        self,
        text: str,
        hint: Optional[MediaSource] = None,
        mode: str = "card",
    ) -> DecodedAudio:
        """
        Resolve text to playable audio.

        Args:
            text: Spoken text (the cache key)
            hint: Previously stored payload or URL for this text
            mode: Voice mode used if generation is needed

        Returns:
            Decoded audio

        Raises:
            CollaboratorError: If generation fails
            MediaResolutionError: If the bytes cannot be read or decoded
        """
        if text in self._buffers:
            return self._buffers[text]
        return await self._coalesce(
            self._pending, text, lambda: self._resolve_audio(text, hint, mode)
        )

    async def _decode_tagged(self, source: MediaSource) -> DecodedAudio:
        audio = await self._decode(source)
        self._buffers[source.cache_key] = audio
        return audio

    async def play(self, source: Union[MediaSource, str], rate: float = 1.0) -> None:
        """
        Resolve and play audio.

        Args:
            source: Tagged source; a plain string is spoken text
            rate: Playback speed multiplier
        """
        if isinstance(source, str):
            source = MediaSource.text(source)

        if source.kind is SourceKind.TEXT:
            audio = await self.resolve_audio(source.value)
        else:
            key = source.cache_key
            audio = self._buffers.get(key)
            if audio is None:
                audio = await self._coalesce(self._pending, key, lambda: self._decode_tagged(source))

        await self.player.play(audio, rate)

    def preload(self, text: str, hint: Optional[MediaSource] = None) -> asyncio.Task:
        """Warm the cache for text in the background; failures are only logged."""
        return self._spawn_background(self.resolve_audio(text, hint), f"preload {text[:30]!r}")

    # ==================== Images ====================

    async def _resolve_image(self, prompt: str, word: str, key: str) -> str:
        if self.store is not None:
            try:
                url = await self.store.find_global_image(word)
            except PersistenceError as e:
                logger.debug(f"Global image lookup failed for {key!r}: {e}")
                url = None
            if url:
                self._images[key] = url
                return url

        payload = await self.image_fetcher.fetch(prompt)
        data_uri = f"data:image/png;base64,{TextParser.strip_data_uri(payload)}"
        result = data_uri

        if self.store is not None:
            try:
                result = await self.store.save_global_image(word, data_uri)
            except PersistenceError as e:
                logger.warning(f"Could not save image for {key!r} to global cache: {e}")

        self._images[key] = result
        return result

    async def resolve_image(self, prompt: str, word: str) -> str:
        """
        Resolve an image for a word.

        Args:
            prompt: Generation prompt (used only on a miss)
            word: Word identity, the cache key

        Returns:
            Stored image URL, or an inline data URI if saving failed
        """
        key = TextParser.normalize_key(word)
        if key in self._images:
            return self._images[key]
        return await self._coalesce(
            self._image_pending, key, lambda: self._resolve_image(prompt, word, key)
        )
