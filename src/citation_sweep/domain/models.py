"""Domain models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any

from .results import Failure

DEFAULT_CURRENCY = "USD"


class Provider(str, Enum):
    """External citation data sources."""

    VANGUARD = "vanguard"
    PROFESSIONAL_PARKING_MANAGEMENT = "professional-parking-management"
    METROPOLIS = "metropolis"
    CITY_OF_FORT_LAUDERDALE = "city-of-fort-lauderdale"
    CITY_OF_KEY_WEST = "city-of-key-west"
    PARKING_COMPLIANCE = "parking-compliance"
    MIAMI_PARKING = "miami-parking"

    @property
    def profile(self) -> "ProviderProfile":
        return PROVIDER_PROFILES[self]

    @property
    def display_name(self) -> str:
        return self.profile.display_name


class Transport(str, Enum):
    API = "api"
    SCRAPE = "scrape"


@dataclass(frozen=True)
class ProviderProfile:
    """Static limits for one provider."""

    display_name: str
    max_concurrency: int
    min_delay: float  # seconds between granted requests
    transport: Transport = Transport.API
    link: str = ""


PROVIDER_PROFILES: dict[Provider, ProviderProfile] = {
    Provider.VANGUARD: ProviderProfile(
        "Vanguard", 2, 1.0, Transport.SCRAPE, "https://www.payparkingnotice.com"
    ),
    Provider.PROFESSIONAL_PARKING_MANAGEMENT: ProviderProfile(
        "Professional Parking Management", 1, 2.0, Transport.SCRAPE, "https://paymyviolations.com"
    ),
    Provider.METROPOLIS: ProviderProfile(
        "Metropolis", 4, 0.25, Transport.API, "https://payments.metropolis.io/"
    ),
    Provider.CITY_OF_FORT_LAUDERDALE: ProviderProfile(
        "City of Fort Lauderdale", 1, 2.0, Transport.SCRAPE, "https://www.fortlauderdale.gov"
    ),
    Provider.CITY_OF_KEY_WEST: ProviderProfile(
        "City of Key West", 1, 1.5, Transport.SCRAPE, "https://cityofkeywest.rmcpay.com"
    ),
    Provider.PARKING_COMPLIANCE: ProviderProfile(
        "Parking Compliance", 2, 1.0, Transport.API, "https://ppnotice.com/"
    ),
    Provider.MIAMI_PARKING: ProviderProfile(
        "Miami Parking Authority", 2, 0.5, Transport.API, "https://www.miamiparking.com"
    ),
}


class PaymentStatus(IntEnum):
    """Payment status values understood by the system of record."""

    UNKNOWN = -1
    NEW = 0
    PAID = 1
    DISPUTED = 2
    PARTIAL = 4


class FineType(IntEnum):
    UNKNOWN = 0
    PARKING = 1


_PAYMENT_STATUS_TEXT = {
    "OPEN": PaymentStatus.NEW,
    "UNPAID": PaymentStatus.NEW,
    "OVERDUE": PaymentStatus.NEW,
    "PAID": PaymentStatus.PAID,
    "VOID": PaymentStatus.PAID,
    "PENDING": PaymentStatus.PAID,
    "CLOSED VOID": PaymentStatus.PAID,
    "CLOSED WARNING": PaymentStatus.PAID,
    "CLOSED PAID": PaymentStatus.PAID,
}


def payment_status_from_text(status: str | None) -> PaymentStatus:
    """Map a portal's free-text payment status onto PaymentStatus."""
    if not status or not status.strip():
        return PaymentStatus.UNKNOWN
    return _PAYMENT_STATUS_TEXT.get(status.strip().upper(), PaymentStatus.UNKNOWN)


def normalize_plate(plate: str) -> str:
    """Uppercase a plate and drop anything that is not a letter or digit."""
    return "".join(ch for ch in plate.upper() if ch.isalnum())


def vehicle_key(tag: str | None, state: str | None) -> tuple[str, str]:
    """Case-insensitive (tag, state) identity."""
    return ((tag or "").strip().upper(), (state or "").strip().upper())


@dataclass(frozen=True)
class Vehicle:
    """A fleet vehicle snapshot, identified by plate and jurisdiction."""

    tag: str
    state: str
    vehicle_id: int | None = None
    fleet_provider: int = 0  # system-of-record provider value, used by the sink
    label: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return vehicle_key(self.tag, self.state)

    def __str__(self) -> str:
        return f"{self.tag} ({self.state})"


@dataclass(frozen=True)
class VehicleContext:
    """Per-vehicle context the sink needs alongside a citation."""

    fleet_provider: int = 0
    vehicle_id: int | None = None

    @classmethod
    def for_vehicle(cls, vehicle: Vehicle) -> "VehicleContext":
        return cls(fleet_provider=vehicle.fleet_provider, vehicle_id=vehicle.vehicle_id)


DEFAULT_VEHICLE_CONTEXT = VehicleContext()


@dataclass(frozen=True)
class CitationRecord:
    """Normalized citation produced by a reader."""

    provider: Provider
    tag: str
    state: str
    citation_number: str | None = None
    notice_number: str | None = None
    agency: str | None = None
    address: str | None = None
    issue_date: datetime | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    amount: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    payment_status: PaymentStatus = PaymentStatus.NEW
    fine_type: FineType = FineType.PARKING
    note: str | None = None
    link: str | None = None
    is_active: bool = True
    id: str | None = None

    @property
    def vehicle_key(self) -> tuple[str, str]:
        return vehicle_key(self.tag, self.state)

    @property
    def reference(self) -> str:
        return self.citation_number or self.notice_number or "Unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProcessingError:
    """One failed (vehicle, provider) attempt. Informational only."""

    tag: str
    state: str
    provider: Provider
    message: str
    code: int = 0
    timestamp: datetime = field(default_factory=_utcnow)
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_failure(cls, vehicle: Vehicle, provider: Provider, failure: Failure) -> "ProcessingError":
        details = {"kind": failure.kind.value, **failure.details}
        return cls(
            tag=vehicle.tag,
            state=vehicle.state,
            provider=provider,
            message=failure.message,
            code=failure.code,
            details=details,
        )


@dataclass
class RunSummary:
    """Totals for one run, computed once after the sweep."""

    total_vehicles: int
    total_providers: int
    successful_operations: int
    failed_operations: int
    total_citations: int
    started_at: datetime
    finished_at: datetime
    citations_by_provider: dict[Provider, int] = field(default_factory=dict)
    errors_by_provider: dict[Provider, int] = field(default_factory=dict)
    dispatched: int = 0
    dispatch_failures: int = 0

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_vehicles": self.total_vehicles,
            "total_providers": self.total_providers,
            "successful_operations": self.successful_operations,
            "failed_operations": self.failed_operations,
            "total_citations": self.total_citations,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "citations_by_provider": {p.value: n for p, n in self.citations_by_provider.items()},
            "errors_by_provider": {p.value: n for p, n in self.errors_by_provider.items()},
            "dispatched": self.dispatched,
            "dispatch_failures": self.dispatch_failures,
        }
