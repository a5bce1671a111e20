"""Tests for the coordination cell, executor and diagnostics."""

import itertools
import logging
import threading

import pytest

from batch_farming.allocation.allocator import ResourceAllocator
from batch_farming.control.coordination import CoordinationCell, claim_tick
from batch_farming.control.diagnostics import (
    CycleReport,
    DiagnosticsRecorder,
    LoggingDiagnostics,
    format_report,
)
from batch_farming.control.executor import Executor, dispatched_units
from batch_farming.errors import ErrorKind
from batch_farming.planning.batch import Batch
from batch_farming.state.operations import OperationType
from batch_farming.state.worker import WorkerPool, WorkerSnapshot


class RecordingLauncher:
    """Launcher that records calls and fails on request."""

    def __init__(self, fail_on: set[str] | None = None):
        self.calls = []
        self.fail_on = fail_on or set()

    def launch(self, script_kind, worker_id, unit_count, target_id, finish_time=None, run_id=None):
        self.calls.append((script_kind, worker_id, unit_count, target_id, finish_time, run_id))
        if worker_id in self.fail_on:
            return None
        return f"{script_kind}@{worker_id}#{run_id}"


def make_allocation(extract=4, replenish=2, counter=1):
    pool = WorkerPool([WorkerSnapshot("w1", 64.0), WorkerSnapshot("w2", 8.0)])
    batch = Batch("t1", extract=extract, replenish=replenish, counter=counter)
    return ResourceAllocator().allocate(batch, pool)


class TestCoordinationCell:
    """Tests for CoordinationCell."""

    def test_peek_set(self):
        cell = CoordinationCell("tick")
        assert cell.peek() is None
        cell.set(1000)
        assert cell.peek() == 1000
        assert cell.version == 1

    def test_compare_and_set(self):
        cell = CoordinationCell("tick", initial=200)
        assert not cell.compare_and_set(400, 600)
        assert cell.peek() == 200
        assert cell.compare_and_set(200, 600)
        assert cell.peek() == 600

    def test_clear(self):
        cell = CoordinationCell("target", initial="alpha")
        cell.clear()
        assert cell.peek() is None


class TestClaimTick:
    """Tests for claim_tick()."""

    def test_same_tick_claimed_once(self):
        cell = CoordinationCell("tick")
        assert claim_tick(cell, 1000)
        assert not claim_tick(cell, 1000)
        assert not claim_tick(cell, 800)
        assert claim_tick(cell, 1200)

    def test_concurrent_claims_have_one_winner(self):
        cell = CoordinationCell("tick")
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            won = claim_tick(cell, 2000)
            with lock:
                results.append(won)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert results.count(True) == 1
        assert cell.peek() == 2000


class TestExecutor:
    """Tests for Executor.dispatch()."""

    def test_dispatches_every_assignment(self):
        launcher = RecordingLauncher()
        executor = Executor(launcher)
        allocation = make_allocation()
        finish = {OperationType.COUNTER: 1200, OperationType.REPLENISH: 1600, OperationType.EXTRACT: 2000}

        records = executor.dispatch(allocation, finish)

        assert len(records) == len(allocation.assignments)
        assert all(r.launched for r in records)
        assert dispatched_units(records) == allocation.dispatched_counts
        kinds = {call[0] for call in launcher.calls}
        assert kinds == {"extract", "replenish", "counter"}
        for call in launcher.calls:
            assert call[4] == finish[OperationType.parse(call[0])]

    def test_one_run_id_per_batch(self):
        launcher = RecordingLauncher()
        executor = Executor(launcher)
        first = executor.dispatch(make_allocation())
        second = executor.dispatch(make_allocation())
        assert {r.run_id for r in first} == {0}
        assert {r.run_id for r in second} == {1}

    def test_shared_run_id_counter(self):
        counter = itertools.count(100)
        a = Executor(RecordingLauncher(), run_ids=counter)
        b = Executor(RecordingLauncher(), run_ids=counter)
        assert a.dispatch(make_allocation())[0].run_id == 100
        assert b.dispatch(make_allocation())[0].run_id == 101

    def test_operation_filter(self):
        launcher = RecordingLauncher()
        records = Executor(launcher).dispatch(
            make_allocation(), operations=[OperationType.COUNTER]
        )
        assert [r.operation for r in records] == [OperationType.COUNTER]

    def test_failed_launch_recorded(self):
        launcher = RecordingLauncher(fail_on={"w1"})
        executor = Executor(launcher)
        records = executor.dispatch(make_allocation())
        assert not any(r.launched for r in records)
        assert executor.failed_count == len(records)
        assert sum(dispatched_units(records).values()) == 0

    def test_empty_allocation(self):
        launcher = RecordingLauncher()
        allocation = make_allocation(extract=0, replenish=0, counter=0)
        assert Executor(launcher).dispatch(allocation) == []
        assert launcher.calls == []


class TestDiagnostics:
    """Tests for cycle reports and sinks."""

    @pytest.fixture
    def report(self):
        return CycleReport(
            cycle=3,
            timestamp=1200.0,
            target_id="t1",
            strategy="farming",
            value_ratio=0.95,
            pressure_delta=0.25,
            planned={OperationType.EXTRACT: 10, OperationType.REPLENISH: 2, OperationType.COUNTER: 1},
            dispatched={OperationType.EXTRACT: 10, OperationType.REPLENISH: 2, OperationType.COUNTER: 1},
            utilization=42.0,
            wait_ms=19200.0,
            finish_times={OperationType.COUNTER: 18000},
        )

    def test_as_dict_uses_names(self, report):
        data = report.as_dict()
        assert data["dispatched"] == {"extract": 10, "replenish": 2, "counter": 1}
        assert data["finish_times"] == {"counter": 18000}
        assert data["error"] is None
        assert report.dispatched_total == 13

    def test_format_report(self, report):
        text = format_report(report)
        assert "t1" in text
        assert "Extract Units" in text

    def test_logging_info_line(self, report, caplog):
        with caplog.at_level(logging.INFO, logger="batch_farming"):
            LoggingDiagnostics().publish(report)
        assert any(r.levelno == logging.INFO and "cycle 3" in r.getMessage() for r in caplog.records)

    def test_logging_warning_on_shortfall(self, report, caplog):
        report.dispatched = {}
        report.shortfall = 12.5
        report.error = ErrorKind.INSUFFICIENT_CAPACITY
        with caplog.at_level(logging.INFO, logger="batch_farming"):
            LoggingDiagnostics().publish(report)
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings
        assert "InsufficientCapacity" in warnings[0].getMessage()

    def test_recorder(self, report):
        recorder = DiagnosticsRecorder(max_reports=2)
        for _ in range(3):
            recorder.publish(report)
        assert len(recorder) == 2
        assert recorder.latest is report
        assert recorder.for_target("t1") == [report, report]
        recorder.clear()
        assert recorder.latest is None
