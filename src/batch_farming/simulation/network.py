"""In-process network of targets and workers driven by a FakeClock.

Implements the snapshot, discovery and job-launch interfaces so control
loops can run end to end without any remote system. Every launched job
is a DeadlineTask stepped from the event heap instead of a thread: once
at launch, then every poll interval until it fires or aborts. A fired
job completes after its last duration reading and applies its effect through
the same FormulaAnalyzer the planner uses.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field

import numpy as np

from batch_farming.errors import UndefinedYieldError
from batch_farming.planning.analyzer import PRESSURE_CEILING, FormulaAnalyzer
from batch_farming.scheduling.jobs import DeadlineTask, JobState, TimedJob
from batch_farming.state.operations import OPERATION_SPECS, OperationSpec, OperationType
from batch_farming.state.target import TargetSnapshot
from batch_farming.state.worker import WorkerSnapshot
from batch_farming.timing.clock import FakeClock
from batch_farming.timing.raster import TICK_MS, raster

logger = logging.getLogger(__name__)

# Duration of each operation relative to extract
DURATION_RATIOS: dict[OperationType, float] = {
    OperationType.EXTRACT: 1.0,
    OperationType.REPLENISH: 3.2,
    OperationType.COUNTER: 4.0,
}


@dataclass
class SimTarget:
    """Mutable state of a simulated target."""

    target_id: str
    value: float
    max_value: float
    pressure: float
    min_pressure: float
    growth_rate: float = 0.03
    base_duration_ms: float = 4000.0  # Extract duration at zero pressure
    success_chance: float = 1.0
    extracted: float = 0.0  # Total value removed so far

    def raw_duration(self, operation: OperationType) -> float:
        """Unaligned duration; grows with pressure."""
        extract_ms = self.base_duration_ms * (1.0 + self.pressure / 50.0)
        return extract_ms * DURATION_RATIOS[operation]


@dataclass
class SimWorker:
    worker_id: str
    total_capacity: float
    cores: int = 1
    committed: float = 0.0

    @property
    def free(self) -> float:
        return self.total_capacity - self.committed


@dataclass
class SimJob:
    """A launched job and the capacity it holds."""

    job: TimedJob
    worker_id: str
    cost: float
    launched_at: float
    cores: int = 1
    completed_at: float | None = None
    duration: float = 0.0  # Latest duration reading
    task: DeadlineTask | None = field(default=None, repr=False)


@dataclass
class JobOutcome:
    """Terminal record of a simulated job."""

    operation: OperationType | None
    target_id: str
    units: int
    run_id: int
    state: JobState
    target_finish: float
    completed_at: float | None = None


@dataclass
class NetworkStats:
    launched: int = 0
    rejected: int = 0
    fired: int = 0
    time_misses: int = 0
    wrong_types: int = 0
    completed: int = 0
    outcomes: list[JobOutcome] = field(default_factory=list)


class SimulatedNetwork:
    """Simulated targets and workers advancing with a FakeClock.

    Args:
        targets: Initial target states.
        workers: Worker capacities.
        clock: Shared fake clock; the network listens to its advances.
        analyzer: Effect model, shared with the planner.
        tick_ms: Raster width used for job finish prediction.
        poll_interval_ms: Interval between job polls.
        jitter_prob: Probability that a duration reading is one tick longer.
        seed: Seed for the jitter generator.
        specs: Per-operation unit costs.
        jitter_slack_ticks: Ticks a timed job may fire ahead of its finish time.
    """

    def __init__(
        self,
        targets: list[SimTarget],
        workers: list[SimWorker],
        clock: FakeClock,
        analyzer: FormulaAnalyzer | None = None,
        tick_ms: int = TICK_MS,
        poll_interval_ms: float = 150.0,
        jitter_prob: float = 0.0,
        seed: int | None = None,
        specs: dict[OperationType, OperationSpec] | None = None,
        jitter_slack_ticks: int = 1,
    ):
        if not 0.0 <= jitter_prob <= 1.0:
            raise ValueError(f"jitter_prob must be in [0, 1]; got {jitter_prob}")
        self.targets = {t.target_id: t for t in targets}
        self.workers = {w.worker_id: w for w in workers}
        self.clock = clock
        self.analyzer = analyzer or FormulaAnalyzer()
        self.tick_ms = tick_ms
        self.poll_interval_ms = poll_interval_ms
        self.jitter_prob = jitter_prob
        self.jitter_slack_ticks = jitter_slack_ticks
        self.specs = specs or OPERATION_SPECS
        self.stats = NetworkStats()

        self._rng = np.random.default_rng(seed)
        self._events: list[tuple[float, int, str, SimJob]] = []
        self._seq = itertools.count()
        self._running: list[SimJob] = []
        clock.add_listener(self.advance_to)

    # ------------------------------------------------------------------
    # Discovery and snapshots
    # ------------------------------------------------------------------

    def target_ids(self) -> list[str]:
        return list(self.targets)

    def worker_ids(self) -> list[str]:
        return list(self.workers)

    def read_duration(self, target_id: str, operation: OperationType) -> float:
        """One duration reading, possibly a tick longer than the true value."""
        duration = self.targets[target_id].raw_duration(operation)
        if self.jitter_prob > 0 and self._rng.random() < self.jitter_prob:
            duration += self.tick_ms
        return duration

    def target_snapshot(self, target_id: str) -> TargetSnapshot:
        if target_id not in self.targets:
            raise KeyError(f"Unknown target '{target_id}'")
        t = self.targets[target_id]
        return TargetSnapshot.from_raw(
            target_id=t.target_id,
            value=t.value,
            max_value=t.max_value,
            pressure=t.pressure,
            min_pressure=t.min_pressure,
            raw_durations={op: self.read_duration(target_id, op) for op in OperationType},
            tick=self.tick_ms,
            growth_rate=t.growth_rate,
            success_chance=t.success_chance,
        )

    def _exact_snapshot(self, target: SimTarget) -> TargetSnapshot:
        return TargetSnapshot.from_raw(
            target_id=target.target_id,
            value=target.value,
            max_value=target.max_value,
            pressure=target.pressure,
            min_pressure=target.min_pressure,
            raw_durations={op: target.raw_duration(op) for op in OperationType},
            tick=self.tick_ms,
            growth_rate=target.growth_rate,
            success_chance=target.success_chance,
        )

    def worker_snapshot(self, worker_id: str) -> WorkerSnapshot:
        if worker_id not in self.workers:
            raise KeyError(f"Unknown worker '{worker_id}'")
        w = self.workers[worker_id]
        return WorkerSnapshot(
            worker_id=w.worker_id,
            total_capacity=w.total_capacity,
            committed_capacity=min(w.committed, w.total_capacity),
            cores=w.cores,
        )

    @property
    def in_flight(self) -> int:
        return len(self._running)

    # ------------------------------------------------------------------
    # Job launch
    # ------------------------------------------------------------------

    def launch(
        self,
        script_kind: str,
        worker_id: str,
        unit_count: int,
        target_id: str,
        finish_time: float | None = None,
        run_id: int | None = None,
    ) -> SimJob | None:
        """Start a job; returns None when it cannot be placed."""
        if unit_count <= 0:
            return None
        worker = self.workers.get(worker_id)
        if worker is None or target_id not in self.targets:
            logger.warning("Launch rejected: unknown worker %s or target %s", worker_id, target_id)
            self.stats.rejected += 1
            return None

        now = self.clock.now_ms()
        job = TimedJob(
            operation=script_kind,
            target_id=target_id,
            units=unit_count,
            target_finish=0,
            run_id=run_id if run_id is not None else 0,
            worker_id=worker_id,
            tick=self.tick_ms,
            slack_ticks=self.jitter_slack_ticks,
        )
        if job.state == JobState.ABORTED_WRONG_TYPE:
            # The script starts and exits at once without holding capacity
            sim_job = SimJob(job, worker_id, 0.0, now)
            self.stats.launched += 1
            self._finish(sim_job, now)
            return sim_job

        cost = unit_count * self.specs[job.operation].unit_cost
        if cost > worker.free + 1e-9:
            logger.warning(
                "Launch rejected: %s needs %.2f on %s, %.2f free",
                job.operation.name,
                cost,
                worker_id,
                worker.free,
            )
            self.stats.rejected += 1
            return None

        duration = self.read_duration(target_id, job.operation)
        # Untimed jobs fire immediately
        job.target_finish = (
            finish_time if finish_time is not None else raster(now + duration, self.tick_ms)
        )
        worker.committed += cost
        sim_job = SimJob(job, worker_id, cost, now, cores=worker.cores, duration=duration)
        sim_job.task = DeadlineTask(
            job,
            duration_fn=lambda: sim_job.duration,
            perform=lambda fired: self._schedule_completion(sim_job),
            clock=self.clock,
            poll_interval_ms=self.poll_interval_ms,
        )
        self._running.append(sim_job)
        self.stats.launched += 1
        self._poll(sim_job, now)
        return sim_job

    # ------------------------------------------------------------------
    # Time progression
    # ------------------------------------------------------------------

    def _push(self, when: float, kind: str, sim_job: SimJob) -> None:
        heapq.heappush(self._events, (when, next(self._seq), kind, sim_job))

    def _schedule_completion(self, sim_job: SimJob) -> None:
        self._push(sim_job.job.fired_at + sim_job.duration, "complete", sim_job)

    def _poll(self, sim_job: SimJob, now: float) -> None:
        state = sim_job.task.step(now)
        if state == JobState.FIRED:
            self.stats.fired += 1
        elif state == JobState.WAITING:
            self._push(now + self.poll_interval_ms, "poll", sim_job)
        else:
            self._finish(sim_job, now)

    def advance_to(self, now: float) -> None:
        """Process every poll and completion up to `now`, in time order."""
        while self._events and self._events[0][0] <= now:
            when, _, kind, sim_job = heapq.heappop(self._events)
            if kind == "poll":
                job = sim_job.job
                sim_job.duration = self.read_duration(job.target_id, job.operation)
                self._poll(sim_job, when)
            else:
                self._apply(sim_job, when)
                self._finish(sim_job, when)

    def _finish(self, sim_job: SimJob, when: float) -> None:
        job = sim_job.job
        if sim_job in self._running:
            self._running.remove(sim_job)
            worker = self.workers[sim_job.worker_id]
            worker.committed = max(0.0, worker.committed - sim_job.cost)
        if job.state == JobState.FIRED:
            sim_job.completed_at = when
            self.stats.completed += 1
        elif job.state == JobState.ABORTED_TIME_MISS:
            self.stats.time_misses += 1
        elif job.state == JobState.ABORTED_WRONG_TYPE:
            self.stats.wrong_types += 1
        self.stats.outcomes.append(
            JobOutcome(
                operation=job.operation if isinstance(job.operation, OperationType) else None,
                target_id=job.target_id,
                units=job.units,
                run_id=job.run_id,
                state=job.state,
                target_finish=job.target_finish,
                completed_at=sim_job.completed_at,
            )
        )

    def _apply(self, sim_job: SimJob, when: float) -> None:
        job = sim_job.job
        target = self.targets[job.target_id]
        snapshot = self._exact_snapshot(target)

        if job.operation == OperationType.EXTRACT:
            try:
                fraction = job.units * self.analyzer.extract_yield_per_unit(snapshot)
            except UndefinedYieldError:
                fraction = 0.0
            removed = target.value * min(1.0, fraction) * target.success_chance
            target.value -= removed
            target.extracted += removed
            target.pressure += self.analyzer.extract_pressure(job.units)
        elif job.operation == OperationType.REPLENISH:
            base = target.value if target.value > 0 else 1.0
            multiplier = self.analyzer.growth_multiplier(snapshot, job.units, sim_job.cores)
            target.value = min(target.max_value, base * multiplier)
            target.pressure += self.analyzer.replenish_pressure(job.units)
        else:
            reduction = job.units * self.analyzer.counter_reduction_per_unit(sim_job.cores)
            target.pressure = max(target.min_pressure, target.pressure - reduction)

        target.pressure = min(target.pressure, PRESSURE_CEILING)
        logger.debug(
            "%s x%d landed on %s at %.0fms (target %dms): value %.1f pressure %.3f",
            job.operation.name,
            job.units,
            target.target_id,
            when,
            job.target_finish,
            target.value,
            target.pressure,
        )
