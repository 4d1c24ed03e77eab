"""Domain layer - core business logic."""

from .cancellation import CancellationToken
from .models import (
    CitationRecord,
    PaymentStatus,
    ProcessingError,
    Provider,
    ProviderProfile,
    RunSummary,
    Vehicle,
    VehicleContext,
)
from .orchestrator import CitationOrchestrator, LookupResult, LookupStatus, RunResult, RunStatus
from .results import Cancelled, Failure, FailureKind, Ok, Result

__all__ = [
    "CancellationToken",
    "Cancelled",
    "CitationOrchestrator",
    "CitationRecord",
    "Failure",
    "FailureKind",
    "LookupResult",
    "LookupStatus",
    "Ok",
    "PaymentStatus",
    "ProcessingError",
    "Provider",
    "ProviderProfile",
    "Result",
    "RunResult",
    "RunStatus",
    "RunSummary",
    "Vehicle",
    "VehicleContext",
]
