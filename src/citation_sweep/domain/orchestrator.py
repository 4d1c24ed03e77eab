"""Citation orchestrator - drives the vehicle x provider sweep."""

import logging
import os
import threading
from collections import Counter, deque
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from ..ports.auth import AuthPort
from ..ports.reader import CitationReaderPort
from ..ports.sink import SinkPort
from ..ports.vehicles import VehiclePort
from .cancellation import POLL_INTERVAL, CancellationToken, never_cancelled
from .dispatcher import DEFAULT_SINK_WORKERS, DispatchReport, SinkDispatcher
from .models import (
    PROVIDER_PROFILES,
    CitationRecord,
    ProcessingError,
    Provider,
    ProviderProfile,
    RunSummary,
    Vehicle,
    normalize_plate,
)
from .progress import ProgressTracker, get_progress_tracker
from .rate_limiter import ProviderRateLimiter, SlotLimiter
from .registry import ReaderRegistry
from .results import Cancelled, Failure, FailureKind, Ok, Result

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_TIMEOUT = 120.0
DEFAULT_STATE = "FL"


def default_max_workers() -> int:
    return (os.cpu_count() or 1) * 2


class RunStatus(str, Enum):
    FATAL = "fatal"
    COMPLETED = "completed"
    NO_RESULTS = "no_results"
    CANCELLED = "cancelled"


@dataclass
class RunResult:
    """Outcome of one run."""

    status: RunStatus
    reason: str | None = None
    summary: RunSummary | None = None
    citations: list[CitationRecord] = field(default_factory=list)
    errors: list[ProcessingError] = field(default_factory=list)
    dispatch: DispatchReport | None = None

    @property
    def success(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.NO_RESULTS)


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class LookupResult:
    """Outcome of an ad hoc single-plate query."""

    provider: Provider
    plate: str
    state: str
    status: LookupStatus
    citations: list[CitationRecord] = field(default_factory=list)
    error: ProcessingError | None = None


class _SweepAggregate:
    """Append-only collections shared by all cell workers.

    deque.append is thread-safe; only the processed-vehicle set needs a lock
    because membership test and insert must happen together.
    """

    def __init__(self) -> None:
        self.citations: deque[CitationRecord] = deque()
        self.errors: deque[ProcessingError] = deque()
        self.succeeded: deque[Provider] = deque()
        self._processed: set[tuple[str, str]] = set()
        self._processed_lock = threading.Lock()

    def mark_processed(self, key: tuple[str, str]) -> bool:
        """True the first time a vehicle key is seen."""
        with self._processed_lock:
            if key in self._processed:
                return False
            self._processed.add(key)
            return True


class CitationOrchestrator:
    """Runs every enabled provider against every vehicle, then feeds the sink.

    Only authorization failure and a missing or empty vehicle list abort a
    run. Everything else becomes a ProcessingError and the sweep continues.
    `auth` and `vehicles` may be None for an instance that only serves
    lookups; `run` on such an instance is fatal.
    """

    def __init__(
        self,
        auth: AuthPort | None,
        vehicles: VehiclePort | None,
        readers: ReaderRegistry,
        sink: SinkPort | None = None,
        *,
        profiles: Mapping[Provider, ProviderProfile] | None = None,
        enabled_providers: Sequence[Provider] | None = None,
        max_workers: int | None = None,
        sink_workers: int = DEFAULT_SINK_WORKERS,
        progress: ProgressTracker | None = None,
    ) -> None:
        self.auth = auth
        self.vehicles = vehicles
        self.readers = readers
        self.profiles = {**PROVIDER_PROFILES, **(profiles or {})}
        self.enabled_providers = list(enabled_providers) if enabled_providers is not None else list(Provider)
        self.max_workers = max_workers or default_max_workers()
        self.rate_limiter = ProviderRateLimiter(self.profiles)
        self.global_slots = SlotLimiter(self.max_workers)
        self.dispatcher = SinkDispatcher(sink, sink_workers) if sink is not None else None
        self.progress = progress or get_progress_tracker()
        self._run_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(
        self,
        providers: Iterable[Provider] | None = None,
        token: CancellationToken | None = None,
    ) -> RunResult:
        """Execute one run over the vehicle x provider matrix.

        `providers` restricts the run to a subset of the enabled providers.
        """
        token = token or never_cancelled()
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("A citation run is already in progress")

        self.progress.start()
        try:
            return self._run(providers, token)
        finally:
            self.progress.finish()
            self._run_lock.release()

    def _run(self, providers: Iterable[Provider] | None, token: CancellationToken) -> RunResult:
        started_at = datetime.now(timezone.utc)
        logger.info("Starting to read citations for all fleet vehicles")
        if self.auth is None or self.vehicles is None:
            return self._fatal("Fleet backend is not configured")

        logger.info("Attempting authorization...")
        if not self._authorize():
            return self._fatal("Authorization failed. Cannot proceed with citation reading.")
        logger.info("Authorization successful")
        if token.is_cancelled:
            return self._cancelled(token)

        logger.info("Fetching fleet vehicles...")
        fetched = self._fetch_vehicles()
        if isinstance(fetched, RunResult):
            return fetched
        vehicles = fetched
        if token.is_cancelled:
            return self._cancelled(token)

        requested = self.enabled_providers if providers is None else [
            p for p in providers if p in self.enabled_providers
        ]
        active = self.readers.resolve(requested)
        reason = None
        if not active:
            reason = "No enabled provider has a registered reader"
            logger.error(f"{reason}, nothing to sweep")

        self.progress.reset()
        self.progress.set_total_vehicles(len(vehicles))
        logger.info(f"Found {len(vehicles)} vehicles and {len(active)} citation providers")

        aggregate = self._sweep(vehicles, active, token)

        citations = list(aggregate.citations)
        errors = list(aggregate.errors)
        summary = RunSummary(
            total_vehicles=len(vehicles),
            total_providers=len(active),
            successful_operations=len(aggregate.succeeded),
            failed_operations=len(errors),
            total_citations=len(citations),
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            citations_by_provider=dict(Counter(c.provider for c in citations)),
            errors_by_provider=dict(Counter(e.provider for e in errors)),
        )
        self._log_summary(summary)

        if token.is_cancelled:
            logger.warning(f"Run cancelled after collecting {len(citations)} citations")
            return RunResult(
                status=RunStatus.CANCELLED,
                reason=token.reason,
                summary=summary,
                citations=citations,
                errors=errors,
            )

        if not citations:
            logger.info("No citations found")
            return RunResult(status=RunStatus.NO_RESULTS, reason=reason, summary=summary, errors=errors)

        dispatch = None
        if self.dispatcher is not None:
            dispatch = self.dispatcher.dispatch(citations, vehicles, token)
            summary.dispatched = dispatch.submitted
            summary.dispatch_failures = dispatch.failed

        return RunResult(
            status=RunStatus.COMPLETED,
            summary=summary,
            citations=citations,
            errors=errors,
            dispatch=dispatch,
        )

    def _authorize(self) -> bool:
        try:
            return bool(self.auth.try_authorize())
        except Exception as e:
            logger.exception(f"Authorization raised: {e}")
            return False

    def _fetch_vehicles(self) -> list[Vehicle] | RunResult:
        try:
            result = self.vehicles.get_vehicles()
        except Exception as e:
            logger.exception(f"Vehicle retrieval raised: {e}")
            result = Failure.from_exception(e)

        if isinstance(result, Cancelled):
            return RunResult(status=RunStatus.CANCELLED, reason=result.reason)
        if isinstance(result, Failure):
            return self._fatal(f"Failed to get fleet vehicles. Error: {result.message}")

        vehicles = _distinct(result.value or [])
        if not vehicles:
            return self._fatal("Fleet vehicle list is empty")
        return vehicles

    def _fatal(self, reason: str) -> RunResult:
        logger.critical(f"Fatal error: {reason}")
        return RunResult(status=RunStatus.FATAL, reason=reason)

    def _cancelled(self, token: CancellationToken) -> RunResult:
        logger.warning("Run cancelled before the sweep started")
        return RunResult(status=RunStatus.CANCELLED, reason=token.reason)

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def _sweep(
        self,
        vehicles: Sequence[Vehicle],
        providers: Sequence[Provider],
        token: CancellationToken,
    ) -> _SweepAggregate:
        aggregate = _SweepAggregate()
        cells = [(vehicle, provider) for vehicle in vehicles for provider in providers]
        if not cells:
            return aggregate

        logger.info(f"Starting parallel processing of {len(cells)} vehicle-provider combinations")
        workers = min(self.max_workers, len(cells))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sweep") as pool:
            futures = [
                pool.submit(self._process_cell, vehicle, provider, token, aggregate)
                for vehicle, provider in cells
            ]
            _wait_all(futures, token)
        return aggregate

    def _process_cell(
        self,
        vehicle: Vehicle,
        provider: Provider,
        token: CancellationToken,
        aggregate: _SweepAggregate,
    ) -> None:
        if token.is_cancelled:
            return

        result = self._read(vehicle, provider, token)
        if isinstance(result, Cancelled):
            return

        if isinstance(result, Ok):
            records = list(result.value or [])
            aggregate.citations.extend(records)
            aggregate.succeeded.append(provider)
            if records:
                self.progress.add_violations(len(records))
                logger.debug(
                    f"Found {len(records)} citations for vehicle {vehicle.tag} "
                    f"from {provider.display_name}"
                )
        else:
            aggregate.errors.append(ProcessingError.from_failure(vehicle, provider, result))
            logger.warning(
                f"Error reading citations for vehicle {vehicle.tag} "
                f"from {provider.display_name}: {result.message}"
            )

        if aggregate.mark_processed(vehicle.key):
            self.progress.increment_processed_vehicles()

    def _read(
        self, vehicle: Vehicle, provider: Provider, token: CancellationToken
    ) -> Result[list[CitationRecord]]:
        """One cell: global slot, provider slot, then the reader call."""
        reader = self.readers.get(provider)
        if reader is None:
            return Failure(FailureKind.PROVIDER, f"No reader registered for {provider.display_name}")

        with self.global_slots.hold(token) as acquired:
            if not acquired:
                return token.as_result()
            with self.rate_limiter.slot(provider, token) as granted:
                if not granted:
                    return token.as_result()
                logger.debug(f"Processing vehicle {vehicle} with provider {provider.display_name}")
                return _call_reader(reader, vehicle, provider, token)

    def _log_summary(self, summary: RunSummary) -> None:
        minutes, seconds = divmod(int(summary.duration_seconds), 60)
        logger.info(
            f"Citation processing completed. Duration: {minutes:02d}:{seconds:02d}, "
            f"Citations: {summary.total_citations}, Errors: {summary.failed_operations}, "
            f"Vehicles: {summary.total_vehicles}, Providers: {summary.total_providers}"
        )
        for provider, count in summary.errors_by_provider.items():
            logger.warning(f"Provider {provider.display_name} had {count} errors")
        for provider, count in summary.citations_by_provider.items():
            logger.info(f"Found {count} citations from {provider.display_name}")

    # ------------------------------------------------------------------
    # Ad hoc lookup
    # ------------------------------------------------------------------

    def lookup(
        self,
        provider: Provider,
        plate: str,
        state: str = DEFAULT_STATE,
        timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        token: CancellationToken | None = None,
    ) -> LookupResult:
        """Query one provider for one plate within a wall-clock budget.

        Slots are taken and released on the calling thread. A reader that
        never answers yields TIMED_OUT and leaves no slot held; its worker
        thread is abandoned and finishes in the background.
        """
        plate = normalize_plate(plate)
        state = state.strip().upper()
        vehicle = Vehicle(tag=plate, state=state)
        lookup_token = (token or never_cancelled()).linked(timeout)
        logger.info(f"Starting citation lookup for plate '{plate}' using {provider.display_name}...")

        result = self._lookup_read(vehicle, provider, lookup_token)
        if isinstance(result, Cancelled):
            return self._lookup_interrupted(provider, plate, state, result.reason)
        if isinstance(result, Failure):
            logger.error(f"Citation lookup failed for plate '{plate}': {result.message}")
            return LookupResult(
                provider=provider,
                plate=plate,
                state=state,
                status=LookupStatus.FAILED,
                error=ProcessingError.from_failure(vehicle, provider, result),
            )

        citations = list(result.value or [])
        if citations:
            logger.info(f"Citation lookup completed! Found {len(citations)} citation(s) for plate '{plate}'.")
            status = LookupStatus.FOUND
        else:
            logger.info(f"No citations found for plate '{plate}' using {provider.display_name}.")
            status = LookupStatus.NOT_FOUND
        return LookupResult(provider=provider, plate=plate, state=state, status=status, citations=citations)

    def _lookup_read(
        self, vehicle: Vehicle, provider: Provider, token: CancellationToken
    ) -> Result[list[CitationRecord]]:
        reader = self.readers.get(provider)
        if reader is None:
            return Failure(FailureKind.PROVIDER, f"No reader registered for {provider.display_name}")

        with self.global_slots.hold(token) as acquired:
            if not acquired:
                return token.as_result()
            with self.rate_limiter.slot(provider, token) as granted:
                if not granted:
                    return token.as_result()
                return _call_reader_until(reader, vehicle, provider, token)

    def _lookup_interrupted(self, provider: Provider, plate: str, state: str, reason: str) -> LookupResult:
        status = LookupStatus.TIMED_OUT if reason == "timeout" else LookupStatus.CANCELLED
        logger.warning(f"Citation lookup for plate '{plate}' was cancelled ({reason}).")
        return LookupResult(provider=provider, plate=plate, state=state, status=status)


def _call_reader(
    reader: CitationReaderPort, vehicle: Vehicle, provider: Provider, token: CancellationToken
) -> Result[list[CitationRecord]]:
    try:
        return reader.read_citations(vehicle.tag, vehicle.state, token)
    except Exception as e:
        logger.exception(
            f"Exception reading citations for vehicle {vehicle.tag} from provider {provider.display_name}"
        )
        return Failure.from_exception(e)


def _call_reader_until(
    reader: CitationReaderPort, vehicle: Vehicle, provider: Provider, token: CancellationToken
) -> Result[list[CitationRecord]]:
    """Run the reader on a daemon thread and stop waiting once `token` fires."""
    outcome: list[Result[list[CitationRecord]]] = []
    finished = threading.Event()

    def work() -> None:
        try:
            outcome.append(_call_reader(reader, vehicle, provider, token))
        finally:
            finished.set()

    threading.Thread(target=work, name=f"lookup-{provider.value}", daemon=True).start()
    while not finished.wait(POLL_INTERVAL):
        if token.is_cancelled:
            break

    if not outcome:
        return token.as_result()
    return outcome[0]


def _distinct(vehicles: Iterable[Vehicle]) -> list[Vehicle]:
    seen: dict[tuple[str, str], Vehicle] = {}
    for vehicle in vehicles:
        if vehicle.key in seen:
            logger.debug(f"Skipping duplicate vehicle {vehicle}")
            continue
        seen[vehicle.key] = vehicle
    return list(seen.values())


def _wait_all(futures: list[Future], token: CancellationToken) -> None:
    """Wait for every cell. On cancel, drop cells that have not started."""
    pending = set(futures)
    cancelled = False
    while pending:
        done, pending = wait(pending, timeout=POLL_INTERVAL)
        for future in done:
            if not future.cancelled():
                future.result()
        if token.is_cancelled and not cancelled:
            cancelled = True
            dropped = sum(1 for future in pending if future.cancel())
            logger.warning(f"Cancellation requested, dropped {dropped} queued cells")
