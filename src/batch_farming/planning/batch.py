"""The Batch record produced by each planning cycle."""

import math
from dataclasses import dataclass, field, replace
from enum import Enum

from batch_farming.state.operations import (
    OPERATION_SPECS,
    OperationSpec,
    OperationType,
)


class Strategy(str, Enum):
    FARMING = "farming"
    PREPARATION = "preparation"


@dataclass(frozen=True)
class Batch:
    """Unit counts for one coordinated extract/replenish/counter cycle.

    A batch is owned by the cycle that planned it and discarded after
    dispatch. Derived copies come from `with_counts` and `with_finish_times`.
    """

    target_id: str
    extract: int = 0
    replenish: int = 0
    counter: int = 0
    strategy: Strategy = Strategy.PREPARATION
    finish_times: dict[OperationType, int] | None = field(default=None)

    def __post_init__(self):
        for name in ("extract", "replenish", "counter"):
            count = getattr(self, name)
            if count < 0:
                raise ValueError(f"{name} unit count must be >= 0; got {count}")

    def count(self, operation: OperationType) -> int:
        operation = OperationType.parse(operation)
        if operation == OperationType.EXTRACT:
            return self.extract
        if operation == OperationType.REPLENISH:
            return self.replenish
        return self.counter

    @property
    def counts(self) -> dict[OperationType, int]:
        return {op: self.count(op) for op in OperationType}

    @property
    def total_units(self) -> int:
        return self.extract + self.replenish + self.counter

    @property
    def is_empty(self) -> bool:
        return self.total_units == 0

    def cost(
        self,
        operation: OperationType,
        specs: dict[OperationType, OperationSpec] | None = None,
    ) -> float:
        specs = specs or OPERATION_SPECS
        return self.count(operation) * specs[OperationType.parse(operation)].unit_cost

    def total_cost(self, specs: dict[OperationType, OperationSpec] | None = None) -> float:
        """Capacity needed to run every unit of the batch at once."""
        return float(sum(self.cost(op, specs) for op in OperationType))

    def finish_time(self, operation: OperationType) -> int | None:
        if self.finish_times is None:
            return None
        return self.finish_times.get(OperationType.parse(operation))

    def with_counts(self, **counts: int) -> "Batch":
        return replace(self, **counts)

    def scaled(self, ratio: float) -> "Batch":
        """Copy with every count multiplied by `ratio` and rounded down."""
        if not 0.0 <= ratio <= 1.0:
            raise ValueError(f"ratio must be in [0, 1]; got {ratio}")
        return self.with_counts(
            extract=int(math.floor(self.extract * ratio)),
            replenish=int(math.floor(self.replenish * ratio)),
            counter=int(math.floor(self.counter * ratio)),
        )

    def with_finish_times(self, finish_times: dict[OperationType, int]) -> "Batch":
        return replace(self, finish_times=dict(finish_times))

    def format_table(self, specs: dict[OperationType, OperationSpec] | None = None) -> str:
        """Fixed-width summary of units and capacity per operation."""
        lines = [
            "+----------+------------+------------+------------+",
            "|          |  Extract   | Replenish  |  Counter   |",
            "| Units    | {:>10d} | {:>10d} | {:>10d} |".format(
                self.extract, self.replenish, self.counter
            ),
            "| Capacity | {:>10.2f} | {:>10.2f} | {:>10.2f} |".format(
                self.cost(OperationType.EXTRACT, specs),
                self.cost(OperationType.REPLENISH, specs),
                self.cost(OperationType.COUNTER, specs),
            ),
            "+----------+------------+------------+------------+",
        ]
        return "\n".join(lines)
