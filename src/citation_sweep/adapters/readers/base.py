"""Base class for readers backed by a provider's HTTP endpoint."""

import logging
from abc import abstractmethod
from dataclasses import replace
from typing import Any

import httpx

from ...domain.cancellation import CancellationToken
from ...domain.models import CitationRecord, Provider, ProviderProfile, Transport
from ...domain.results import Failure, Ok, Result
from ...domain.retry import API_RETRY_POLICY, SCRAPE_RETRY_POLICY, RetryPolicy
from ...ports.reader import CitationReaderPort
from ..http.client import DEFAULT_TIMEOUT, JsonHttpClient

logger = logging.getLogger(__name__)


def policy_for(profile: ProviderProfile) -> RetryPolicy:
    """Retry policy for a provider's transport, never backing off below its spacing.

    Retries run inside a granted rate-limiter slot and bypass its timing gate.
    """
    policy = SCRAPE_RETRY_POLICY if profile.transport == Transport.SCRAPE else API_RETRY_POLICY
    return replace(policy, min_delay=max(policy.min_delay, profile.min_delay))


class HttpCitationReader(CitationReaderPort):
    """One search request per plate, parsed into CitationRecords.

    Subclasses set `provider_type`, `base_url` and `search_path`, and
    implement `search_params` and `parse`. Failures whose message or body
    contains one of `no_data_markers` mean "nothing found" and become Ok([]).
    """

    provider_type: Provider
    base_url: str = ""
    search_path: str = ""
    no_data_markers: tuple[str, ...] = ()
    downgrade_failures: bool = False

    def __init__(
        self,
        client: JsonHttpClient | None = None,
        *,
        profile: ProviderProfile | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.profile = profile or self.provider_type.profile
        self.client = client or JsonHttpClient(
            self.base_url,
            timeout=timeout,
            policy=policy_for(self.profile),
            transport=transport,
        )

    @property
    def provider(self) -> Provider:
        return self.provider_type

    @property
    def link(self) -> str:
        return self.profile.link

    def read_citations(
        self,
        plate: str,
        state: str,
        token: CancellationToken | None = None,
    ) -> Result[list[CitationRecord]]:
        car = f"{plate} ({state})"
        result = self.client.get(
            self.search_path,
            params=self.search_params(plate, state),
            parse=lambda data: self.parse(data, plate, state),
            on_failure=self._recover,
            token=token,
        )

        if isinstance(result, Failure):
            logger.warning(f"{self.provider_type.display_name} request failed for {car}: {result.message}")
            if self.downgrade_failures:
                return Ok([])
        elif isinstance(result, Ok):
            if result.value:
                logger.info(f"Found {len(result.value)} citations for vehicle: {car}")
            else:
                logger.info(f"No citations found for vehicle: {car}")
        return result

    def is_no_data(self, failure: Failure) -> bool:
        body = str(failure.details.get("body", ""))
        return any(marker in failure.message or marker in body for marker in self.no_data_markers)

    def _recover(self, failure: Failure) -> Result[list[CitationRecord]]:
        if self.is_no_data(failure):
            return Ok([])
        return failure

    @abstractmethod
    def search_params(self, plate: str, state: str) -> dict[str, str]:
        pass

    @abstractmethod
    def parse(self, data: Any, plate: str, state: str) -> list[CitationRecord]:
        """Map a decoded response onto records. Raise ValueError on bad shape."""
        pass
