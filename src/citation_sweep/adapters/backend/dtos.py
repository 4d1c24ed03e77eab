"""Wire models for the fleet backend (system of record)."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from ...domain.models import CitationRecord, Vehicle, VehicleContext
from ..http.client import ProviderError


class BackendModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def unwrap_envelope(data: Any) -> Any:
    """Return the `result` of a `{reason, message, result}` envelope.

    A non-zero reason is a provider-level failure carrying that reason as code.
    """
    if not isinstance(data, dict) or "reason" not in data:
        raise ValueError("Response is not a backend envelope")
    reason = data["reason"]
    if reason != 0:
        message = data.get("message") or f"Request failed with reason {reason}"
        raise ProviderError(message, code=int(reason))
    return data.get("result")


class SignInRequest(BackendModel):
    email: str
    password: str


class AuthDto(BackendModel):
    token: str
    token_expired: datetime | None = None


class ExternalVehicleDto(BackendModel):
    id: int = 0
    label: str | None = None
    vin: str | None = None
    tag: str | None = None
    state: str | None = None
    license_plate: str | None = None
    provider: int = 0
    is_active: bool = True

    @property
    def plate(self) -> str:
        return (self.tag or self.license_plate or "").strip()

    def to_vehicle(self) -> Vehicle:
        return Vehicle(
            tag=self.plate,
            state=(self.state or "").strip(),
            vehicle_id=self.id,
            fleet_provider=self.provider,
            label=self.label,
        )


class ParkingViolation(BackendModel):
    """Payload for ExternalViolation/create."""

    id: str | None = None
    citation_number: str | None = None
    notice_number: str | None = None
    provider: int = 0
    agency: str | None = None
    address: str | None = None
    tag: str | None = None
    state: str | None = None
    issue_date: datetime | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    amount: Decimal = Decimal("0")
    currency: str | None = None
    payment_status: int = 0
    fine_type: int = 0
    note: str | None = None
    link: str | None = None
    is_active: bool = True

    @classmethod
    def from_record(cls, record: CitationRecord, context: VehicleContext) -> "ParkingViolation":
        return cls(
            id=record.id,
            citation_number=record.citation_number,
            notice_number=record.notice_number,
            provider=context.fleet_provider,
            agency=record.agency,
            address=record.address,
            tag=record.tag,
            state=record.state,
            issue_date=record.issue_date,
            start_date=record.start_date,
            end_date=record.end_date,
            amount=record.amount,
            currency=record.currency,
            payment_status=int(record.payment_status),
            fine_type=int(record.fine_type),
            note=record.note,
            link=record.link,
            is_active=record.is_active,
        )

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
