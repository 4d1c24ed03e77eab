"""Explicit provider -> reader registry, built once at startup."""

import logging
from collections.abc import Iterable

from ..ports.reader import CitationReaderPort
from .models import Provider

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Invalid configuration or wiring."""


class ReaderRegistry:
    def __init__(self, readers: Iterable[CitationReaderPort] = ()) -> None:
        self._readers: dict[Provider, CitationReaderPort] = {}
        for reader in readers:
            self.register(reader)

    def register(self, reader: CitationReaderPort) -> None:
        provider = reader.provider
        if provider in self._readers:
            raise ConfigError(f"Duplicate reader registered for provider: {provider.value}")
        self._readers[provider] = reader
        logger.debug(f"Registered reader for {provider.display_name}")

    def get(self, provider: Provider) -> CitationReaderPort | None:
        return self._readers.get(provider)

    def __contains__(self, provider: object) -> bool:
        return provider in self._readers

    def __len__(self) -> int:
        return len(self._readers)

    @property
    def providers(self) -> list[Provider]:
        """Registered providers in enum declaration order."""
        return [p for p in Provider if p in self._readers]

    def resolve(self, enabled: Iterable[Provider]) -> list[Provider]:
        """Enabled providers that have a reader; the rest are logged and skipped."""
        available = []
        for provider in dict.fromkeys(enabled):
            if provider in self._readers:
                available.append(provider)
            else:
                logger.warning(f"No reader registered for provider {provider.display_name}, skipping")
        return available
