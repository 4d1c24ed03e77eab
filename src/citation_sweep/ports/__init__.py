"""Ports - interfaces for external dependencies."""

from .auth import AuthPort
from .reader import CitationReaderPort
from .sink import SinkPort
from .vehicles import VehiclePort

__all__ = ["AuthPort", "CitationReaderPort", "SinkPort", "VehiclePort"]
