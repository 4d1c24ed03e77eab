"""Sink port - interface for submitting citations to the system of record."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import CitationRecord, VehicleContext
    from ..domain.results import Result


class SinkPort(ABC):
    """Stateless push target for normalized citations."""

    @abstractmethod
    def submit(self, record: "CitationRecord", context: "VehicleContext") -> "Result[None]":
        """Submit one citation with its vehicle context."""
        pass
