"""Greedy packing of a batch onto the worker pool.

Workers are visited in descending order of free capacity. On each worker
counter-pressure is placed first, then replenish, then extract, matching
the planner's priority. A batch that does not fit completely is not
dispatched at all: a partial batch would break the landing order between
the three operations.
"""

import logging
import math
from dataclasses import dataclass, field

from batch_farming.errors import ErrorKind, InsufficientCapacityError
from batch_farming.planning.batch import Batch
from batch_farming.state.operations import (
    ALLOCATION_ORDER,
    OPERATION_SPECS,
    OperationSpec,
    OperationType,
)
from batch_farming.state.worker import WorkerPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    """Units of one operation placed on one worker."""

    worker_id: str
    operation: OperationType
    units: int
    cost: float


@dataclass
class Allocation:
    """Outcome of packing one batch."""

    batch: Batch
    assignments: list[Assignment] = field(default_factory=list)
    shortfall: float = 0.0  # Capacity missing for the full batch
    unplaced: dict[OperationType, int] = field(default_factory=dict)
    error: ErrorKind | None = None

    @property
    def is_empty(self) -> bool:
        return not self.assignments

    def dispatched(self, operation: OperationType) -> int:
        operation = OperationType.parse(operation)
        return sum(a.units for a in self.assignments if a.operation == operation)

    @property
    def dispatched_counts(self) -> dict[OperationType, int]:
        return {op: self.dispatched(op) for op in OperationType}

    @property
    def total_units(self) -> int:
        return sum(a.units for a in self.assignments)

    @property
    def total_cost(self) -> float:
        return float(sum(a.cost for a in self.assignments))

    def used_by_worker(self) -> dict[str, float]:
        used: dict[str, float] = {}
        for a in self.assignments:
            used[a.worker_id] = used.get(a.worker_id, 0.0) + a.cost
        return used


class ResourceAllocator:
    """Maps ideal batch counts onto concrete worker assignments."""

    def __init__(self, specs: dict[OperationType, OperationSpec] | None = None):
        self.specs = specs or OPERATION_SPECS

    def pack(
        self, batch: Batch, pool: WorkerPool
    ) -> tuple[list[Assignment], dict[OperationType, int]]:
        """Greedy placement without the all-or-nothing rule.

        Returns:
            (assignments, remaining units per operation)
        """
        remaining = batch.counts
        assignments: list[Assignment] = []

        for worker in pool.available():
            if not any(remaining.values()):
                break
            free = worker.free_capacity
            for op in ALLOCATION_ORDER:
                if remaining[op] <= 0:
                    continue
                cost = self.specs[op].unit_cost
                fits = int(math.floor(free / cost + 1e-9))
                units = min(remaining[op], fits)
                if units <= 0:
                    continue
                assignments.append(
                    Assignment(
                        worker_id=worker.worker_id,
                        operation=op,
                        units=units,
                        cost=units * cost,
                    )
                )
                remaining[op] -= units
                free -= units * cost

        return assignments, remaining

    def allocate(self, batch: Batch, pool: WorkerPool) -> Allocation:
        if batch.is_empty:
            return Allocation(batch=batch)

        required = batch.total_cost(self.specs)
        available = pool.free_capacity
        if required > available + 1e-9:
            shortage = InsufficientCapacityError(required, available)
            logger.info("Skipping batch for %s: %s", batch.target_id, shortage)
            return Allocation(
                batch=batch,
                shortfall=shortage.shortfall,
                unplaced=batch.counts,
                error=shortage.kind,
            )

        assignments, remaining = self.pack(batch, pool)
        if any(remaining.values()):
            # Enough capacity in total, but fragmented across workers
            missing = sum(units * self.specs[op].unit_cost for op, units in remaining.items())
            logger.info(
                "Skipping batch for %s: %.2f capacity fragmented across workers",
                batch.target_id,
                missing,
            )
            return Allocation(
                batch=batch,
                shortfall=float(missing),
                unplaced=remaining,
                error=ErrorKind.INSUFFICIENT_CAPACITY,
            )

        return Allocation(batch=batch, assignments=assignments)
