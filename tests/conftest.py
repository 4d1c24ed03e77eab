"""Shared test fixtures."""

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from citation_sweep.domain.models import CitationRecord, Provider, ProviderProfile, Transport, Vehicle
from citation_sweep.domain.progress import ProgressTracker
from citation_sweep.domain.results import Ok, Result
from citation_sweep.ports.auth import AuthPort
from citation_sweep.ports.reader import CitationReaderPort
from citation_sweep.ports.sink import SinkPort
from citation_sweep.ports.vehicles import VehiclePort

FAST_PROFILES = {
    provider: ProviderProfile(provider.display_name, 4, 0.0, Transport.API)
    for provider in Provider
}


@pytest.fixture
def sample_vehicles() -> list[Vehicle]:
    """Three distinct fleet vehicles."""
    return [
        Vehicle(tag="ABC123", state="FL", vehicle_id=1, fleet_provider=3),
        Vehicle(tag="XYZ789", state="FL", vehicle_id=2, fleet_provider=3),
        Vehicle(tag="JKL456", state="GA", vehicle_id=3, fleet_provider=5),
    ]


@pytest.fixture
def sample_citation() -> CitationRecord:
    return CitationRecord(
        provider=Provider.METROPOLIS,
        tag="ABC123",
        state="FL",
        notice_number="MET-1001",
        agency="Metropolis",
        address="100 Main St, Miami, FL 33101",
        issue_date=datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
        amount=Decimal("45.00"),
    )


@pytest.fixture
def fast_profiles() -> dict[Provider, ProviderProfile]:
    """Profiles without spacing so sweeps finish quickly."""
    return dict(FAST_PROFILES)


@pytest.fixture
def progress() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def mock_auth() -> MagicMock:
    """Mock auth port that always authorizes."""
    mock = MagicMock(spec=AuthPort)
    mock.try_authorize.return_value = True
    return mock


@pytest.fixture
def mock_vehicles(sample_vehicles: list[Vehicle]) -> MagicMock:
    """Mock vehicle port returning the sample fleet."""
    mock = MagicMock(spec=VehiclePort)
    mock.get_vehicles.return_value = Ok(sample_vehicles)
    return mock


@pytest.fixture
def mock_sink() -> MagicMock:
    mock = MagicMock(spec=SinkPort)
    mock.submit.return_value = Ok(None)
    return mock


@pytest.fixture
def make_reader() -> Callable[..., MagicMock]:
    """Factory for mock readers bound to a provider."""

    def factory(
        provider: Provider,
        result: Result | None = None,
        side_effect: Callable | Exception | None = None,
    ) -> MagicMock:
        mock = MagicMock(spec=CitationReaderPort)
        mock.provider = provider
        mock.read_citations.return_value = result if result is not None else Ok([])
        if side_effect is not None:
            mock.read_citations.side_effect = side_effect
        return mock

    return factory
