"""Process-wide progress state read by an external observer."""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

MAX_LOG_ENTRIES = 1000


@dataclass(frozen=True)
class ProgressSnapshot:
    running: bool
    started_at: datetime | None
    processed_vehicles: int
    total_vehicles: int
    violation_count: int

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return (datetime.now(timezone.utc) - self.started_at).total_seconds()


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: int
    message: str

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)


class ProgressTracker:
    """Counters mutated by the orchestrator under one short-held lock.

    Every mutator holds the lock only for the field update. Readers get a
    consistent snapshot without waiting on any I/O.
    """

    def __init__(self, max_log_entries: int = MAX_LOG_ENTRIES) -> None:
        self._lock = threading.Lock()
        self._running = False
        self._started_at: datetime | None = None
        self._processed_vehicles = 0
        self._total_vehicles = 0
        self._violation_count = 0
        self._log: deque[LogEntry] = deque(maxlen=max_log_entries)

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def started_at(self) -> datetime | None:
        with self._lock:
            return self._started_at

    @property
    def processed_vehicles(self) -> int:
        with self._lock:
            return self._processed_vehicles

    @property
    def total_vehicles(self) -> int:
        with self._lock:
            return self._total_vehicles

    @property
    def violation_count(self) -> int:
        with self._lock:
            return self._violation_count

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(
                running=self._running,
                started_at=self._started_at,
                processed_vehicles=self._processed_vehicles,
                total_vehicles=self._total_vehicles,
                violation_count=self._violation_count,
            )

    def start(self) -> None:
        """Mark a run as started and zero the counters."""
        with self._lock:
            self._running = True
            self._started_at = datetime.now(timezone.utc)
            self._processed_vehicles = 0
            self._total_vehicles = 0
            self._violation_count = 0

    def finish(self) -> None:
        with self._lock:
            self._running = False
            self._started_at = None

    def reset(self) -> None:
        with self._lock:
            self._processed_vehicles = 0
            self._total_vehicles = 0
            self._violation_count = 0

    def set_total_vehicles(self, total: int) -> None:
        with self._lock:
            self._total_vehicles = total

    def increment_processed_vehicles(self) -> int:
        with self._lock:
            self._processed_vehicles += 1
            return self._processed_vehicles

    def add_violations(self, count: int = 1) -> int:
        with self._lock:
            self._violation_count += count
            return self._violation_count

    # deque appends are thread-safe; no lock needed for the feed
    def add_log(self, level: int, message: str) -> None:
        self._log.append(LogEntry(datetime.now(timezone.utc), level, message))

    def log_entries(self) -> list[LogEntry]:
        return list(self._log)

    def clear_logs(self) -> None:
        self._log.clear()


class ProgressLogHandler(logging.Handler):
    """Mirror log records into a tracker's log feed."""

    def __init__(self, tracker: ProgressTracker, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.tracker = tracker

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.tracker.add_log(record.levelno, self.format(record))
        except Exception:
            self.handleError(record)


_tracker = ProgressTracker()


def get_progress_tracker() -> ProgressTracker:
    """The process-wide tracker."""
    return _tracker
