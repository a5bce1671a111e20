"""Alignment of operation finish times on the shared period.

Within one period P = k*T the three operations finish at fixed offsets:
counter-pressure at 0, replenish at T, extract at 2T. Each operation
assumes the previous one has already landed, so pressure is lowered
before value is restored, and value is restored before it is extracted.
"""

import math

from batch_farming.config import TimingConfig
from batch_farming.state.operations import OperationType
from batch_farming.timing.raster import raster

# Slot index of each operation within the period
_SLOTS: dict[OperationType, int] = {
    OperationType.COUNTER: 0,
    OperationType.REPLENISH: 1,
    OperationType.EXTRACT: 2,
}


class TimingScheduler:
    """Computes finish slots and fire gates on the tick raster."""

    def __init__(self, config: TimingConfig | None = None):
        self.config = config or TimingConfig()

    @property
    def tick(self) -> int:
        return self.config.tick_ms

    @property
    def time_budget(self) -> int:
        return self.config.time_budget_ms

    @property
    def period(self) -> int:
        return self.config.period_ms

    def offset(self, operation) -> int:
        """Finish offset of an operation within the period."""
        return _SLOTS[OperationType.parse(operation)] * self.time_budget

    def predicted_finish(self, now: float, duration: float) -> int:
        return raster(now + duration, self.tick)

    def is_aligned(self, operation, predicted_finish: int) -> bool:
        return predicted_finish % self.period == self.offset(operation)

    def start_floor(
        self,
        operation,
        durations: dict[OperationType, int],
        started_at: float,
    ) -> float:
        """Earliest instant an operation may fire in continuous mode.

        The slowest operation may fire at once. Every other operation waits
        one full period plus the slowest duration, so its first landing
        never precedes the first landing of the slowest one.
        """
        operation = OperationType.parse(operation)
        slowest = max(durations.values())
        if durations[operation] >= slowest:
            return started_at
        return started_at + self.period + slowest - durations[operation]

    def should_fire(
        self,
        operation,
        now: float,
        duration: float,
        floor: float = 0.0,
    ) -> bool:
        """True when starting now lands exactly on the operation's offset."""
        if now < floor:
            return False
        return self.is_aligned(operation, self.predicted_finish(now, duration))

    def batch_finish_times(
        self,
        now: float,
        durations: dict[OperationType, int],
        lead_ticks: int = 1,
        not_before: float | None = None,
    ) -> dict[OperationType, int]:
        """Finish times for a batch dispatched now.

        The anchor (counter-pressure finish) is the first period boundary
        from which every operation can still reach its slot with at least
        `lead_ticks` ticks of slack, absorbing a one-tick duration jitter
        between planning and firing.

        Args:
            now: Current time in ms.
            durations: Raster-aligned duration per operation.
            lead_ticks: Spare ticks each operation keeps before its slot.
            not_before: Optional lower bound on the anchor.

        Returns:
            Absolute finish time per operation.
        """
        lead = max(lead_ticks, 0) * self.tick
        needed = max(
            self.predicted_finish(now, durations[op]) + lead - self.offset(op)
            for op in OperationType
        )
        if not_before is not None:
            needed = max(needed, not_before)
        anchor = int(math.ceil(needed / self.period)) * self.period
        return {op: anchor + self.offset(op) for op in OperationType}

    def lands_in_order(self, finish_times: dict[OperationType, int]) -> bool:
        """Check counter -> replenish -> extract spacing within one period."""
        base = finish_times[OperationType.COUNTER]
        for op in OperationType:
            if (finish_times[op] - base) % self.period != self.offset(op):
                return False
        return (
            finish_times[OperationType.COUNTER]
            < finish_times[OperationType.REPLENISH]
            < finish_times[OperationType.EXTRACT]
        )

    def start_time(self, finish_time: int, duration: int) -> int:
        """Latest start that still finishes at `finish_time`."""
        return finish_time - duration
