"""The per-target control loop.

Each cycle reads fresh snapshots, picks a strategy, plans a batch, aligns
its finish times, packs it onto the worker pool, and dispatches it. Nothing
carries over between cycles except the current strategy and the run-id
counter; every cycle replans from scratch.
"""

import logging
import threading

from batch_farming.allocation.allocator import Allocation, ResourceAllocator
from batch_farming.config import FarmingConfig
from batch_farming.control.coordination import CoordinationCell, claim_tick
from batch_farming.control.diagnostics import CycleReport, LoggingDiagnostics
from batch_farming.control.executor import Executor, dispatched_units
from batch_farming.control.interfaces import (
    DiagnosticsSink,
    DiscoveryFeed,
    JobLauncher,
    SnapshotSource,
)
from batch_farming.planning.analyzer import Analyzer
from batch_farming.planning.batch import Batch, Strategy
from batch_farming.planning.planner import BatchPlanner
from batch_farming.planning.selection import TargetSelector
from batch_farming.scheduling.timing import TimingScheduler
from batch_farming.state.operations import OPERATION_SPECS, OperationType
from batch_farming.state.target import TargetSnapshot
from batch_farming.state.worker import WorkerPool
from batch_farming.timing.clock import Clock
from batch_farming.timing.raster import floor_raster

logger = logging.getLogger(__name__)

# Batch field name per operation, for Batch.with_counts
_COUNT_FIELDS = {
    OperationType.EXTRACT: "extract",
    OperationType.REPLENISH: "replenish",
    OperationType.COUNTER: "counter",
}


class ControlLoop:
    """Drives one target through repeated plan/allocate/dispatch cycles.

    Two modes are supported:

    - ``timed``: every cycle dispatches a full batch whose jobs carry
      absolute finish times, then sleeps until the slowest one has landed.
    - ``continuous``: every poll, only the operations whose finish would
      land exactly on their offset are dispatched.

    Args:
        source: Snapshot reads of targets and workers.
        discovery: Reachable targets and usable workers.
        launcher: Job launch boundary.
        config: Loop configuration, defaults when omitted.
        clock: Time source; a FakeClock makes runs deterministic.
        analyzer: Yield and growth oracle for the planner.
        tick_cell: Shared cell claimed with the raster-aligned cycle time.
            Loops that share it never dispatch twice in the same tick.
        target_cell: Shared target selection, read when no fixed target is
            configured.
        sinks: Diagnostics consumers; logging only when omitted.
        executor: Dispatcher, for sharing a run-id counter between loops.
        name: Label used in logs and reports.
    """

    def __init__(
        self,
        source: SnapshotSource,
        discovery: DiscoveryFeed,
        launcher: JobLauncher,
        config: FarmingConfig | None = None,
        clock: Clock | None = None,
        analyzer: Analyzer | None = None,
        tick_cell: CoordinationCell | None = None,
        target_cell: CoordinationCell | None = None,
        sinks: list[DiagnosticsSink] | None = None,
        executor: Executor | None = None,
        name: str = "loop",
    ):
        self.source = source
        self.discovery = discovery
        self.config = config or FarmingConfig()
        self.clock = clock or Clock()
        self.planner = BatchPlanner(
            analyzer=analyzer,
            config=self.config.planner,
            thresholds=self.config.thresholds,
        )
        self.scheduler = TimingScheduler(self.config.timing)
        self.allocator = ResourceAllocator(OPERATION_SPECS)
        self.executor = executor or Executor(launcher, OPERATION_SPECS)
        self.tick_cell = tick_cell or CoordinationCell(f"{name}-tick")
        self.target_cell = target_cell or CoordinationCell(f"{name}-target")
        self.selector = TargetSelector(self.target_cell)
        self.sinks: list[DiagnosticsSink] = (
            sinks if sinks is not None else [LoggingDiagnostics()]
        )
        self.name = name

        self.cycle = 0
        self.mode: Strategy | None = None
        self.last_report: CycleReport | None = None
        self._started_at: float | None = None
        self._last_slots: dict[OperationType, int] = {}
        self._stop_event = threading.Event()

    @property
    def timed(self) -> bool:
        return self.config.loop.mode == "timed"

    # ------------------------------------------------------------------
    # Cycle steps
    # ------------------------------------------------------------------

    def resolve_target(self) -> str | None:
        """Fixed target, else the shared selection, else select one now."""
        if self.config.loop.target_id is not None:
            return self.config.loop.target_id
        current = self.target_cell.peek()
        if current is not None:
            return current
        candidates = [self.source.target_snapshot(t) for t in self.discovery.target_ids()]
        return self.selector.select(candidates)

    def read_pool(self) -> WorkerPool:
        return WorkerPool(self.source.worker_snapshot(w) for w in self.discovery.worker_ids())

    def _update_mode(self, strategy: Strategy, target: TargetSnapshot) -> None:
        if strategy != self.mode:
            logger.info(
                "[%s] %s: %s -> %s (value %.1f%%, pressure delta %.3f)",
                self.name,
                target.target_id,
                self.mode.value if self.mode else None,
                strategy.value,
                target.value_ratio * 100.0,
                target.pressure_delta,
            )
            self.mode = strategy

    def _firing_operations(
        self, target: TargetSnapshot, now: float
    ) -> dict[OperationType, int]:
        """Operations whose finish would land on their offset, with that slot."""
        if self._started_at is None:
            self._started_at = now
        firing = {}
        for op in OperationType:
            duration = target.duration(op)
            floor = self.scheduler.start_floor(op, target.durations, self._started_at)
            if not self.scheduler.should_fire(op, now, duration, floor):
                continue
            slot = self.scheduler.predicted_finish(now, duration)
            # Two polls inside one tick can predict the same slot
            if slot <= self._last_slots.get(op, -1):
                continue
            firing[op] = slot
        return firing

    def _restrict(self, batch: Batch, operations) -> Batch:
        counts = {
            _COUNT_FIELDS[op]: (batch.count(op) if op in operations else 0)
            for op in OperationType
        }
        return batch.with_counts(**counts)

    def _publish(self, report: CycleReport) -> None:
        self.last_report = report
        for sink in self.sinks:
            sink.publish(report)

    def tick(self) -> float:
        """Run one cycle and return the wait before the next, in ms."""
        timing = self.config.timing
        self.cycle += 1
        now = self.clock.now_ms()
        report = CycleReport(cycle=self.cycle, timestamp=now, loop_name=self.name)
        idle_wait = timing.min_sleep_ms if self.timed else timing.poll_interval_ms

        target_id = self.resolve_target()
        if target_id is None:
            report.skipped_reason = "no target"
            report.wait_ms = timing.min_sleep_ms
            self._publish(report)
            return report.wait_ms

        target = self.source.target_snapshot(target_id)
        pool = self.read_pool()
        report.target_id = target_id
        report.value_ratio = target.value_ratio
        report.pressure_delta = target.pressure_delta

        strategy = self.planner.select_strategy(target)
        self._update_mode(strategy, target)
        report.strategy = strategy.value

        batch = self.planner.plan(target, pool)
        report.planned = batch.counts

        operations: dict[OperationType, int] | None = None
        if self.timed:
            batch = batch.with_finish_times(
                self.scheduler.batch_finish_times(now, target.durations)
            )
            report.finish_times = batch.finish_times
        else:
            operations = self._firing_operations(target, now)
            if not operations:
                report.wait_ms = idle_wait
                report.utilization = pool.utilization
                self._publish(report)
                return report.wait_ms
            batch = self._restrict(batch, operations).with_finish_times(operations)
            report.finish_times = dict(operations)

        allocation: Allocation = self.allocator.allocate(batch, pool)
        if allocation.is_empty:
            report.shortfall = allocation.shortfall
            report.error = allocation.error
            if allocation.error is None:
                report.skipped_reason = "empty batch"
            report.utilization = pool.utilization
            report.wait_ms = idle_wait
            self._publish(report)
            return report.wait_ms

        if not claim_tick(self.tick_cell, floor_raster(now, timing.tick_ms)):
            logger.info(
                "[%s] tick %d already claimed, skipping dispatch",
                self.name,
                floor_raster(now, timing.tick_ms),
            )
            report.skipped_reason = "tick claimed"
            report.utilization = pool.utilization
            report.wait_ms = idle_wait
            self._publish(report)
            return report.wait_ms

        run_id = self.executor.next_run_id()
        records = self.executor.dispatch(
            allocation, batch.finish_times, operations, run_id=run_id
        )
        if operations is not None:
            for record in records:
                if record.launched:
                    self._last_slots[record.operation] = operations[record.operation]
        report.run_id = run_id
        report.dispatched = dispatched_units(records)
        report.failed_launches = sum(1 for r in records if not r.launched)

        used = sum(r.units * OPERATION_SPECS[r.operation].unit_cost for r in records if r.launched)
        if pool.total_capacity > 0:
            report.utilization = (
                100.0 * (pool.committed_capacity + used) / pool.total_capacity
            )

        if self.timed:
            slowest = max(batch.finish_times.values())
            report.wait_ms = max(
                float(timing.min_sleep_ms), slowest - now + timing.safety_margin_ms
            )
        else:
            report.wait_ms = idle_wait
        self._publish(report)
        return report.wait_ms

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run(self, max_iterations: int | None = None) -> int:
        """Cycle until stopped or `max_iterations` is reached.

        Returns:
            Number of cycles run.
        """
        if max_iterations is None:
            max_iterations = self.config.loop.max_iterations
        self._stop_event.clear()
        count = 0
        while max_iterations is None or count < max_iterations:
            if self._stop_event.is_set():
                break
            try:
                wait = self.tick()
            except Exception:
                logger.exception("[%s] cycle %d failed", self.name, self.cycle)
                wait = self.config.timing.min_sleep_ms
            count += 1
            if self.clock.wait(wait, self._stop_event):
                break
        logger.info("[%s] stopped after %d cycles", self.name, count)
        return count

    def stop(self) -> None:
        self._stop_event.set()
