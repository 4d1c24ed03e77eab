"""Fleet vehicle list from the backend."""

import logging

from ...domain.models import Vehicle
from ...domain.results import Result
from ...ports.vehicles import VehiclePort
from ..http.client import JsonHttpClient
from .dtos import ExternalVehicleDto, unwrap_envelope

logger = logging.getLogger(__name__)

VEHICLES_PATH = "ExternalVehicles"


def parse_vehicles(data: object) -> list[Vehicle]:
    items = unwrap_envelope(data) or []
    if not isinstance(items, list):
        raise ValueError("Vehicle list is not an array")

    vehicles = []
    for item in items:
        dto = ExternalVehicleDto.model_validate(item)
        if not dto.plate:
            logger.warning(f"Skipping vehicle {dto.id} without a plate")
            continue
        vehicles.append(dto.to_vehicle())
    return vehicles


class BackendVehicleAdapter(VehiclePort):
    def __init__(self, client: JsonHttpClient) -> None:
        self.client = client

    def get_vehicles(self) -> Result[list[Vehicle]]:
        logger.info("Fetching external vehicles from API")
        return self.client.get(VEHICLES_PATH, parse=parse_vehicles)
