"""Metropolis violation search API."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...domain.models import DEFAULT_CURRENCY, CitationRecord, FineType, PaymentStatus, Provider
from ..http.client import ProviderError
from .base import HttpCitationReader

AGENCY = "Metropolis"
BASE_URL = "https://site.metropolis.io/api/violation/customer/violations/"


class _MetropolisModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SiteAddressInfo(_MetropolisModel):
    street: str = ""
    city: str = ""
    state_code: str = ""
    zip: str = ""

    def format(self) -> str:
        return f"{self.street}, {self.city}, {self.state_code} {self.zip}"


class ViolationItemView(_MetropolisModel):
    site_address_info: SiteAddressInfo = Field(default_factory=SiteAddressInfo)
    license_plate: str = ""
    license_plate_state: str = ""
    visit_start: int = 0
    visit_end: int = 0
    violation_issued: int = 0
    total_amount: Decimal = Decimal("0")


class MetropolisViolation(_MetropolisModel):
    ext_id: str = ""
    violation_item_view: ViolationItemView = Field(default_factory=ViolationItemView)


class MetropolisData(_MetropolisModel):
    violations: list[MetropolisViolation] = []


class MetropolisResponse(_MetropolisModel):
    success: bool = True
    message: str | None = None
    data: MetropolisData | None = None


def from_unix_ms(value: int) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class MetropolisReader(HttpCitationReader):
    provider_type = Provider.METROPOLIS
    base_url = BASE_URL
    search_path = "search"
    no_data_markers = ("No violation found", "Violation closed for violation")

    def search_params(self, plate: str, state: str) -> dict[str, str]:
        return {"licensePlateText": plate, "licensePlateState": state}

    def parse(self, data: Any, plate: str, state: str) -> list[CitationRecord]:
        response = MetropolisResponse.model_validate(data)
        if not response.success:
            raise ProviderError(response.message or "Metropolis request failed")
        if response.data is None:
            return []
        return [self._to_record(v, plate, state) for v in response.data.violations]

    def _to_record(self, violation: MetropolisViolation, plate: str, state: str) -> CitationRecord:
        view = violation.violation_item_view
        return CitationRecord(
            provider=self.provider_type,
            tag=view.license_plate or plate,
            state=view.license_plate_state or state,
            notice_number=violation.ext_id or None,
            agency=AGENCY,
            address=view.site_address_info.format(),
            issue_date=from_unix_ms(view.violation_issued),
            start_date=from_unix_ms(view.visit_start),
            end_date=from_unix_ms(view.visit_end),
            amount=view.total_amount,
            currency=DEFAULT_CURRENCY,
            payment_status=PaymentStatus.NEW,
            fine_type=FineType.PARKING,
            link=self.link,
            is_active=True,
        )
