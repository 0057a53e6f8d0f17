"""
Fetcher Factory - provider lookup for media collaborators.

Maps (media type, provider name) to a fetcher class so the configured
provider (Config.AUDIO_PROVIDER, Config.IMAGE_PROVIDER) can be swapped
without touching MediaCache.
"""

from typing import Any, Dict, List, Type

from ..config import Config
from .base import BaseFetcher

MEDIA_TYPES = ("image", "audio", "speech", "remote")


class FetcherFactory:
    """
    Registry of fetcher classes keyed by media type and provider.

    Usage:
        @FetcherFactory.register("my_tts", "audio")
        class MyAudioFetcher(BaseFetcher):
            ...

        fetcher = FetcherFactory.create_default("audio")
    """

    # {media_type: {provider_name: fetcher_class}}
    _registry: Dict[str, Dict[str, Type[BaseFetcher]]] = {t: {} for t in MEDIA_TYPES}

    @classmethod
    def register(cls, provider: str, media_type: str):
        """Class decorator form of register_class()."""
        def decorator(fetcher_cls: Type[BaseFetcher]) -> Type[BaseFetcher]:
            cls.register_class(fetcher_cls, provider, media_type)
            return fetcher_cls
        return decorator

    @classmethod
    def register_class(cls, fetcher_cls: Type[BaseFetcher], provider: str, media_type: str) -> None:
        cls._registry.setdefault(media_type, {})[provider] = fetcher_cls

    @classmethod
    def create(cls, media_type: str, provider: str, **kwargs: Any) -> BaseFetcher:
        """
        Instantiate a registered fetcher.

        Args:
            media_type: "image", "audio", "speech" or "remote"
            provider: Registered provider name
            **kwargs: Passed to the fetcher constructor

        Raises:
            ValueError: Unknown media type or provider
        """
        providers = cls._registry.get(media_type)
        if providers is None:
            raise ValueError(f"Unknown media type: {media_type}")
        if provider not in providers:
            raise ValueError(f"Unknown {media_type} provider: {provider}. Available: {sorted(providers)}")
        return providers[provider](**kwargs)

    @classmethod
    def create_default(cls, media_type: str, **kwargs: Any) -> BaseFetcher:
        """Instantiate the provider configured for a media type."""
        defaults = {
            "audio": Config.AUDIO_PROVIDER,
            "image": Config.IMAGE_PROVIDER,
            "speech": "google",
            "remote": "http",
        }
        if media_type not in defaults:
            raise ValueError(f"Unknown media type: {media_type}")
        return cls.create(media_type, defaults[media_type], **kwargs)

    @classmethod
    def get_available_providers(cls, media_type: str) -> List[str]:
        return list(cls._registry.get(media_type, {}))
