"""Citation reader adapters."""

from collections.abc import Iterable, Mapping

import httpx

from ...domain.models import Provider, ProviderProfile
from ...domain.registry import ReaderRegistry
from ..http.client import DEFAULT_TIMEOUT
from .base import HttpCitationReader
from .metropolis import MetropolisReader

__all__ = ["HttpCitationReader", "MetropolisReader", "READER_TYPES", "build_reader_registry"]

READER_TYPES: dict[Provider, type[HttpCitationReader]] = {
    Provider.METROPOLIS: MetropolisReader,
}


def build_reader_registry(
    providers: Iterable[Provider] | None = None,
    profiles: Mapping[Provider, ProviderProfile] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.BaseTransport | None = None,
) -> ReaderRegistry:
    """Instantiate a reader for every requested provider that has one."""
    wanted = list(Provider) if providers is None else list(providers)
    registry = ReaderRegistry()
    for provider in wanted:
        reader_type = READER_TYPES.get(provider)
        if reader_type is not None:
            profile = (profiles or {}).get(provider)
            registry.register(reader_type(profile=profile, timeout=timeout, transport=transport))
    return registry
