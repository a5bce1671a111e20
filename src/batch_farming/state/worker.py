"""Worker capacity snapshots and the pool they form."""

import math
from dataclasses import dataclass
from typing import Iterable, Iterator


@dataclass(frozen=True)
class WorkerSnapshot:
    """Capacity of a single worker at one instant."""

    worker_id: str
    total_capacity: float
    committed_capacity: float = 0.0
    cores: int = 1

    def __post_init__(self):
        if self.total_capacity < 0:
            raise ValueError(f"{self.worker_id}: total_capacity must be >= 0")
        if self.committed_capacity < 0:
            raise ValueError(f"{self.worker_id}: committed_capacity must be >= 0")
        # Small tolerance for float accumulation in committed capacity
        if self.committed_capacity > self.total_capacity + 1e-9:
            raise ValueError(
                f"{self.worker_id}: committed {self.committed_capacity} exceeds "
                f"total {self.total_capacity}"
            )
        if self.cores < 1:
            raise ValueError(f"{self.worker_id}: cores must be >= 1")

    @property
    def free_capacity(self) -> float:
        return max(0.0, self.total_capacity - self.committed_capacity)

    def units_available(self, unit_cost: float) -> int:
        """Concurrency units of the given cost that fit in free capacity."""
        if unit_cost <= 0:
            raise ValueError(f"unit_cost must be positive; got {unit_cost}")
        # Guard against 3.5 / 1.75 landing just under 2.0
        return int(math.floor(self.free_capacity / unit_cost + 1e-9))

    @property
    def load(self) -> float:
        """Committed share of total capacity in percent."""
        if self.total_capacity <= 0:
            return 100.0
        return 100.0 * self.committed_capacity / self.total_capacity


class WorkerPool:
    """Workers ordered by free capacity, largest first.

    Workers without free capacity are kept for utilization figures but
    never receive work.
    """

    def __init__(self, workers: Iterable[WorkerSnapshot] = ()):
        self._workers: list[WorkerSnapshot] = sorted(
            workers, key=lambda w: w.free_capacity, reverse=True
        )
        ids = [w.worker_id for w in self._workers]
        if len(ids) != len(set(ids)):
            raise ValueError("Worker ids must be unique within a pool")

    def __len__(self) -> int:
        return len(self._workers)

    def __iter__(self) -> Iterator[WorkerSnapshot]:
        return iter(self._workers)

    @property
    def is_empty(self) -> bool:
        return len(self._workers) == 0

    def available(self) -> list[WorkerSnapshot]:
        """Workers with any free capacity, in packing order."""
        return [w for w in self._workers if w.free_capacity > 0]

    def get(self, worker_id: str) -> WorkerSnapshot | None:
        for worker in self._workers:
            if worker.worker_id == worker_id:
                return worker
        return None

    @property
    def total_capacity(self) -> float:
        return float(sum(w.total_capacity for w in self._workers))

    @property
    def free_capacity(self) -> float:
        return float(sum(w.free_capacity for w in self._workers))

    @property
    def committed_capacity(self) -> float:
        return float(sum(w.committed_capacity for w in self._workers))

    @property
    def max_cores(self) -> int:
        if not self._workers:
            return 1
        return max(w.cores for w in self._workers)

    def units_available(self, unit_cost: float) -> int:
        """Units of the given cost that fit, counted worker by worker."""
        return sum(w.units_available(unit_cost) for w in self._workers)

    @property
    def utilization(self) -> float:
        """Committed share of pool capacity in percent."""
        total = self.total_capacity
        if total <= 0:
            return 0.0
        return 100.0 * self.committed_capacity / total
