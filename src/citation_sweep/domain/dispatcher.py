"""Fan normalized citations out to the sink with bounded concurrency."""

import logging
import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from ..ports.sink import SinkPort
from .cancellation import CancellationToken, never_cancelled
from .models import DEFAULT_VEHICLE_CONTEXT, CitationRecord, Vehicle, VehicleContext
from .results import Cancelled, Failure, Ok

logger = logging.getLogger(__name__)

DEFAULT_SINK_WORKERS = 4


@dataclass
class DispatchFailure:
    record: CitationRecord
    message: str
    code: int = 0


@dataclass
class DispatchReport:
    submitted: int = 0
    failed: int = 0
    skipped: int = 0  # not attempted because the run was cancelled
    unmatched: int = 0  # submitted with the default vehicle context
    failures: list[DispatchFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.submitted + self.failed + self.skipped


class SinkDispatcher:
    """Submits each record once. Failures are counted, never retried here."""

    def __init__(self, sink: SinkPort, max_workers: int = DEFAULT_SINK_WORKERS) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.sink = sink
        self.max_workers = max_workers

    def dispatch(
        self,
        records: Sequence[CitationRecord],
        vehicles: Iterable[Vehicle],
        token: CancellationToken | None = None,
    ) -> DispatchReport:
        token = token or never_cancelled()
        report = DispatchReport()
        if not records:
            return report

        contexts = {v.key: VehicleContext.for_vehicle(v) for v in vehicles}
        lock = threading.Lock()
        logger.info(f"Submitting {len(records)} citations with {self.max_workers} workers")

        def submit_one(record: CitationRecord) -> None:
            if token.is_cancelled:
                with lock:
                    report.skipped += 1
                return

            context = contexts.get(record.vehicle_key)
            if context is None:
                logger.warning(
                    f"Could not find matching vehicle for citation {record.reference} "
                    f"with tag {record.tag} and state {record.state}. Using default context."
                )
                context = DEFAULT_VEHICLE_CONTEXT
                with lock:
                    report.unmatched += 1

            try:
                result = self.sink.submit(record, context)
            except Exception as e:
                logger.exception(f"Sink raised for citation {record.reference}: {e}")
                result = Failure.from_exception(e)

            with lock:
                if isinstance(result, Ok):
                    report.submitted += 1
                elif isinstance(result, Cancelled):
                    report.skipped += 1
                else:
                    report.failed += 1
                    report.failures.append(DispatchFailure(record, result.message, result.code))
                    logger.warning(f"Failed to submit citation {record.reference}: {result.message}")

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="sink") as pool:
            # list() drains the iterator so worker exceptions surface here
            list(pool.map(submit_one, records))

        logger.info(
            f"Sink dispatch complete: {report.submitted} submitted, "
            f"{report.failed} failed, {report.skipped} skipped"
        )
        return report
