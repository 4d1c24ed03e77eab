"""Unit tests for the fleet backend adapters."""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from pydantic import SecretStr

from citation_sweep.adapters.backend import create_backend_adapters
from citation_sweep.adapters.backend.dtos import ParkingViolation, unwrap_envelope
from citation_sweep.adapters.backend.vehicles import parse_vehicles
from citation_sweep.adapters.http.client import ProviderError
from citation_sweep.config import BackendConfig
from citation_sweep.domain.models import CitationRecord, PaymentStatus, Provider, Vehicle, VehicleContext
from citation_sweep.domain.registry import ConfigError
from citation_sweep.domain.results import Failure, Ok

BASE_URL = "https://backend.test/api/"


def envelope(result: object, reason: int = 0, message: str | None = None) -> dict:
    return {"reason": reason, "message": message, "stackTrace": None, "result": result}


class FakeBackend:
    """Minimal backend: sign-in, vehicle list and violation create."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.valid_token = "token-1"
        self.signin_ok = True
        self.vehicles: list[dict] = [
            {"id": 1, "tag": "ABC123", "state": "FL", "provider": 3, "label": "Van 1"},
            {"id": 2, "tag": None, "licensePlate": "xyz789", "state": "FL", "provider": 3},
            {"id": 3, "tag": "", "state": "GA"},
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("UserAuth/signin"):
            if not self.signin_ok:
                return httpx.Response(401, text="bad credentials")
            return httpx.Response(
                200, json=envelope({"token": self.valid_token, "tokenExpired": "2099-01-01T00:00:00Z"})
            )
        if request.headers.get("Authorization") != f"Bearer {self.valid_token}":
            return httpx.Response(401)
        if path.endswith("ExternalVehicles"):
            return httpx.Response(200, json=envelope(self.vehicles))
        if path.endswith("ExternalViolation/create"):
            return httpx.Response(200, json=envelope(json.loads(request.content)))
        return httpx.Response(404)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def config() -> BackendConfig:
    return BackendConfig(base_url=BASE_URL, email="ops@fleet.test", password=SecretStr("hunter2"), timeout=5)


class TestEnvelope:
    def test_success(self) -> None:
        assert unwrap_envelope(envelope([1])) == [1]

    def test_reason_is_error(self) -> None:
        with pytest.raises(ProviderError) as exc:
            unwrap_envelope(envelope(None, reason=401, message="Token expired"))
        assert exc.value.code == 401
        assert exc.value.message == "Token expired"

    def test_not_an_envelope(self) -> None:
        with pytest.raises(ValueError):
            unwrap_envelope([1, 2])


class TestParseVehicles:
    def test_maps_and_skips(self, backend: FakeBackend) -> None:
        vehicles = parse_vehicles(envelope(backend.vehicles))
        assert vehicles == [
            Vehicle(tag="ABC123", state="FL", vehicle_id=1, fleet_provider=3, label="Van 1"),
            Vehicle(tag="xyz789", state="FL", vehicle_id=2, fleet_provider=3),
        ]

    def test_null_result(self) -> None:
        assert parse_vehicles(envelope(None)) == []


class TestParkingViolation:
    def test_wire_format(self) -> None:
        record = CitationRecord(
            Provider.METROPOLIS,
            "ABC123",
            "FL",
            notice_number="MET-1",
            amount=Decimal("45.50"),
            issue_date=datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
            payment_status=PaymentStatus.PAID,
        )

        wire = ParkingViolation.from_record(record, VehicleContext(fleet_provider=3, vehicle_id=1)).to_wire()

        assert wire["noticeNumber"] == "MET-1"
        assert wire["provider"] == 3
        assert wire["amount"] == 45.5
        assert wire["paymentStatus"] == 1
        assert wire["fineType"] == 1
        assert wire["isActive"] is True
        assert wire["issueDate"].startswith("2024-03-15T12:00:00")


class TestBackendAdapters:
    """Tests for the wired adapters against a fake backend."""

    def test_requires_base_url(self) -> None:
        with pytest.raises(ConfigError):
            create_backend_adapters(BackendConfig(base_url=""))

    def test_authorize_caches_token(self, backend: FakeBackend, config: BackendConfig) -> None:
        adapters = create_backend_adapters(config, transport=httpx.MockTransport(backend.handler))

        assert adapters.auth.try_authorize() is True
        assert adapters.token_cache.get() == "token-1"
        body = json.loads(backend.requests[0].content)
        assert body == {"email": "ops@fleet.test", "password": "hunter2"}

    def test_authorize_failure(self, backend: FakeBackend, config: BackendConfig) -> None:
        backend.signin_ok = False
        adapters = create_backend_adapters(config, transport=httpx.MockTransport(backend.handler))

        assert adapters.auth.try_authorize() is False
        assert adapters.token_cache.get() is None
        # sign-in does not refresh itself
        assert len(backend.requests) == 1

    def test_vehicles(self, backend: FakeBackend, config: BackendConfig) -> None:
        adapters = create_backend_adapters(config, transport=httpx.MockTransport(backend.handler))
        adapters.auth.try_authorize()

        result = adapters.vehicles.get_vehicles()

        assert isinstance(result, Ok)
        assert [v.tag for v in result.value] == ["ABC123", "xyz789"]

    def test_expired_token_refreshed_once(self, backend: FakeBackend, config: BackendConfig) -> None:
        adapters = create_backend_adapters(config, transport=httpx.MockTransport(backend.handler))
        adapters.auth.try_authorize()
        backend.valid_token = "token-2"

        result = adapters.vehicles.get_vehicles()

        assert isinstance(result, Ok)
        assert adapters.token_cache.get() == "token-2"
        paths = [r.url.path.rsplit("/", 1)[-1] for r in backend.requests]
        assert paths == ["signin", "ExternalVehicles", "signin", "ExternalVehicles"]

    def test_sink_posts_violation(self, backend: FakeBackend, config: BackendConfig) -> None:
        adapters = create_backend_adapters(config, transport=httpx.MockTransport(backend.handler))
        adapters.auth.try_authorize()
        record = CitationRecord(Provider.METROPOLIS, "ABC123", "FL", notice_number="MET-1")

        result = adapters.sink.submit(record, VehicleContext(fleet_provider=3, vehicle_id=1))

        assert result == Ok(None)
        request = backend.requests[-1]
        assert request.method == "POST"
        assert json.loads(request.content)["tag"] == "ABC123"

    def test_sink_failure(self, backend: FakeBackend, config: BackendConfig) -> None:
        adapters = create_backend_adapters(config, transport=httpx.MockTransport(backend.handler))
        backend.signin_ok = False
        record = CitationRecord(Provider.METROPOLIS, "ABC123", "FL")

        result = adapters.sink.submit(record, VehicleContext())

        assert isinstance(result, Failure)
        assert result.code == 401
