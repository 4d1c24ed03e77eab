"""Vehicle port - interface for the fleet vehicle list."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import Vehicle
    from ..domain.results import Result


class VehiclePort(ABC):
    """Interface for retrieving fleet vehicles."""

    @abstractmethod
    def get_vehicles(self) -> "Result[list[Vehicle]]":
        pass
