"""Unit tests for SinkDispatcher."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from citation_sweep.domain.cancellation import CancellationToken
from citation_sweep.domain.dispatcher import SinkDispatcher
from citation_sweep.domain.models import DEFAULT_VEHICLE_CONTEXT, CitationRecord, Provider, Vehicle, VehicleContext
from citation_sweep.domain.results import Failure, FailureKind, Ok


def record(tag: str, state: str = "FL", number: str = "N-1") -> CitationRecord:
    return CitationRecord(Provider.METROPOLIS, tag, state, notice_number=number)


class TestSinkDispatcher:
    """Tests for dispatch fan-out."""

    def test_rejects_zero_workers(self, mock_sink: MagicMock) -> None:
        with pytest.raises(ValueError):
            SinkDispatcher(mock_sink, max_workers=0)

    def test_submits_each_record_once(self, mock_sink: MagicMock, sample_vehicles: list[Vehicle]) -> None:
        records = [record("ABC123", number="1"), record("XYZ789", number="2"), record("JKL456", "GA", "3")]

        report = SinkDispatcher(mock_sink).dispatch(records, sample_vehicles)

        assert report.submitted == 3
        assert report.failed == 0
        assert mock_sink.submit.call_count == 3

    def test_matches_vehicle_context(self, mock_sink: MagicMock, sample_vehicles: list[Vehicle]) -> None:
        SinkDispatcher(mock_sink).dispatch([record("jkl456", "ga")], sample_vehicles)
        mock_sink.submit.assert_called_once()
        _, context = mock_sink.submit.call_args.args
        assert context == VehicleContext(fleet_provider=5, vehicle_id=3)

    def test_unmatched_uses_default_context(self, mock_sink: MagicMock, sample_vehicles: list[Vehicle]) -> None:
        report = SinkDispatcher(mock_sink).dispatch([record("NOPE1")], sample_vehicles)
        _, context = mock_sink.submit.call_args.args
        assert context == DEFAULT_VEHICLE_CONTEXT
        assert report.unmatched == 1
        assert report.submitted == 1

    def test_failures_are_counted(self, mock_sink: MagicMock, sample_vehicles: list[Vehicle]) -> None:
        mock_sink.submit.side_effect = [
            Ok(None),
            Failure(FailureKind.HTTP, "Conflict", code=409),
            RuntimeError("sink down"),
        ]
        records = [record("ABC123", number=str(n)) for n in range(3)]

        report = SinkDispatcher(mock_sink, max_workers=1).dispatch(records, sample_vehicles)

        assert report.submitted == 1
        assert report.failed == 2
        assert sorted(f.code for f in report.failures) == [-1, 409]

    def test_cancelled_run_skips(self, mock_sink: MagicMock, sample_vehicles: list[Vehicle]) -> None:
        token = CancellationToken()
        token.cancel()
        report = SinkDispatcher(mock_sink).dispatch([record("ABC123")], sample_vehicles, token)
        assert report.skipped == 1
        mock_sink.submit.assert_not_called()

    def test_empty(self, mock_sink: MagicMock) -> None:
        report = SinkDispatcher(mock_sink).dispatch([], [])
        assert report.total == 0
        mock_sink.submit.assert_not_called()

    def test_bounded_concurrency(self, mock_sink: MagicMock, sample_vehicles: list[Vehicle]) -> None:
        lock = threading.Lock()
        active = 0
        peak = 0

        def slow_submit(rec: CitationRecord, context: VehicleContext) -> Ok:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return Ok(None)

        mock_sink.submit.side_effect = slow_submit
        records = [record("ABC123", number=str(n)) for n in range(20)]

        report = SinkDispatcher(mock_sink, max_workers=3).dispatch(records, sample_vehicles)

        assert report.submitted == 20
        assert peak <= 3
