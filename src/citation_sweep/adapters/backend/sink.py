"""Parking violation submission to the backend."""

import logging

from ...domain.models import CitationRecord, VehicleContext
from ...domain.results import Ok, Result
from ...ports.sink import SinkPort
from ..http.client import JsonHttpClient
from .dtos import ParkingViolation, unwrap_envelope

logger = logging.getLogger(__name__)

CREATE_VIOLATION_PATH = "ExternalViolation/create"


class BackendViolationSink(SinkPort):
    def __init__(self, client: JsonHttpClient) -> None:
        self.client = client

    def submit(self, record: CitationRecord, context: VehicleContext) -> Result[None]:
        logger.info(f"Create parking violation for {record.tag} {record.state}")
        payload = ParkingViolation.from_record(record, context)
        result = self.client.post(CREATE_VIOLATION_PATH, json=payload.to_wire(), parse=unwrap_envelope)
        if isinstance(result, Ok):
            return Ok(None)
        return result
