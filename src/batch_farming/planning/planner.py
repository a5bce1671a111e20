"""Batch sizing for the farming and preparation strategies.

Both strategies are pure: they read a target snapshot (and optionally the
worker pool) and return a new Batch. Degenerate analyzer results never
propagate; the affected operation falls back to zero units.
"""

import logging
import math

from batch_farming.config import FarmingThresholds, PlannerConfig
from batch_farming.errors import UndefinedYieldError
from batch_farming.planning.analyzer import Analyzer, FormulaAnalyzer
from batch_farming.planning.batch import Batch, Strategy
from batch_farming.state.operations import OPERATION_SPECS, OperationSpec, OperationType, max_unit_cost
from batch_farming.state.target import TargetSnapshot
from batch_farming.state.worker import WorkerPool

logger = logging.getLogger(__name__)


def _ceil_units(value: float) -> int:
    """Round a fractional unit estimate up, tolerating float noise."""
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(math.ceil(value - 1e-9))


def _counter_units(
    analyzer: Analyzer,
    target: TargetSnapshot,
    pressure_increase: float,
    cores: int,
    margin: float,
) -> int:
    try:
        reduction = analyzer.counter_reduction_per_unit(cores)
        if reduction <= 0:
            raise UndefinedYieldError(f"{target.target_id}: zero pressure reduction")
    except UndefinedYieldError as exc:
        logger.warning("Counter-pressure undefined, planning none: %s", exc)
        return 0
    return _ceil_units(pressure_increase / reduction * margin)


def plan_farming_batch(
    target: TargetSnapshot,
    analyzer: Analyzer | None = None,
    config: PlannerConfig | None = None,
    cores: int = 1,
) -> Batch:
    """Size a steady-state cycle for a target that is already near optimal.

    Extract removes `extract_fraction` of the current value, replenish
    restores exactly what was removed (times `grow_margin`), and counter-
    pressure removes the pressure added by both (times `counter_margin`)
    plus any residual pressure above the floor.
    """
    analyzer = analyzer or FormulaAnalyzer()
    config = config or PlannerConfig()

    extract = 0
    replenish_factor = 1.0
    try:
        y = analyzer.extract_yield_per_unit(target)
        extract = int(math.floor(config.extract_fraction / y))
        removed = extract * y
        if not removed < 1.0:
            raise UndefinedYieldError(
                f"{target.target_id}: {extract} units would remove {removed:.2%}"
            )
        replenish_factor = 1.0 / (1.0 - removed)
    except UndefinedYieldError as exc:
        logger.warning("Extract yield undefined, planning no extraction: %s", exc)
        extract = 0
        replenish_factor = 1.0

    try:
        growth = analyzer.growth_units(target, replenish_factor, cores)
    except UndefinedYieldError as exc:
        logger.warning("Growth undefined, planning no replenish: %s", exc)
        growth = 0.0
    replenish = _ceil_units(growth * config.grow_margin)

    pressure_increase = (
        target.pressure_delta
        + analyzer.extract_pressure(extract)
        + analyzer.replenish_pressure(replenish)
    )
    counter = _counter_units(
        analyzer, target, pressure_increase, cores, config.counter_margin
    )

    return Batch(
        target_id=target.target_id,
        extract=extract,
        replenish=replenish,
        counter=counter,
        strategy=Strategy.FARMING,
    )


def plan_preparation_batch(
    target: TargetSnapshot,
    analyzer: Analyzer | None = None,
    cores: int = 1,
    capacity_units: int | None = None,
) -> Batch:
    """Size a batch that drives a target to full value and floor pressure.

    No extraction and no margins: the goal is saturation. With a capacity
    ceiling (in concurrency units), counter-pressure is clamped first and
    replenish gets whatever remains.
    """
    analyzer = analyzer or FormulaAnalyzer()

    # An empty target grows from a single unit of value
    current = target.value if target.value > 0 else 1.0
    grow_factor = max(1.0, target.max_value / current)

    try:
        replenish = _ceil_units(analyzer.growth_units(target, grow_factor, cores))
    except UndefinedYieldError as exc:
        logger.warning("Growth undefined, planning no replenish: %s", exc)
        replenish = 0

    pressure_increase = target.pressure_delta + analyzer.replenish_pressure(replenish)
    counter = _counter_units(analyzer, target, pressure_increase, cores, 1.0)

    if capacity_units is not None:
        ceiling = max(0, int(capacity_units))
        counter = min(counter, ceiling)
        replenish = min(replenish, ceiling - counter)

    return Batch(
        target_id=target.target_id,
        extract=0,
        replenish=replenish,
        counter=counter,
        strategy=Strategy.PREPARATION,
    )


def scale_to_capacity(
    batch: Batch,
    free_capacity: float,
    specs: dict[OperationType, OperationSpec] | None = None,
) -> Batch:
    """Shrink a batch proportionally so its total cost fits `free_capacity`.

    Every count is scaled by the same ratio and rounded down, keeping the
    extract/replenish/counter balance. A batch that already fits is
    returned unchanged.
    """
    needed = batch.total_cost(specs)
    if needed <= 0 or needed <= free_capacity:
        return batch
    ratio = max(0.0, free_capacity) / needed
    logger.info(
        "Scaling %s batch for %s to %.1f%% to fit %.2f free capacity",
        batch.strategy.value,
        batch.target_id,
        100.0 * ratio,
        free_capacity,
    )
    return batch.scaled(ratio)


class BatchPlanner:
    """Chooses a strategy per target and sizes the batch."""

    def __init__(
        self,
        analyzer: Analyzer | None = None,
        config: PlannerConfig | None = None,
        thresholds: FarmingThresholds | None = None,
        specs: dict[OperationType, OperationSpec] | None = None,
    ):
        self.analyzer = analyzer or FormulaAnalyzer()
        self.config = config or PlannerConfig()
        self.thresholds = thresholds or FarmingThresholds()
        self.specs = specs or OPERATION_SPECS

    def select_strategy(self, target: TargetSnapshot) -> Strategy:
        if target.is_farming_ready(self.thresholds):
            return Strategy.FARMING
        return Strategy.PREPARATION

    def plan(self, target: TargetSnapshot, pool: WorkerPool | None = None) -> Batch:
        cores = pool.max_cores if pool is not None else 1
        strategy = self.select_strategy(target)

        if strategy == Strategy.FARMING:
            batch = plan_farming_batch(target, self.analyzer, self.config, cores)
            if self.config.scale_to_capacity and pool is not None:
                batch = scale_to_capacity(batch, pool.free_capacity, self.specs)
        else:
            capacity_units = None
            if pool is not None:
                capacity_units = pool.units_available(max_unit_cost(self.specs))
            batch = plan_preparation_batch(
                target, self.analyzer, cores, capacity_units
            )

        logger.debug(
            "Planned %s batch for %s:\n%s",
            strategy.value,
            target.target_id,
            batch.format_table(self.specs),
        )
        return batch
