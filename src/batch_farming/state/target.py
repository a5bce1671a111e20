"""Point-in-time view of a target."""

from dataclasses import dataclass, field

from batch_farming.config import FarmingThresholds
from batch_farming.state.operations import OperationType
from batch_farming.timing.raster import TICK_MS, raster


@dataclass(frozen=True)
class TargetSnapshot:
    """Read-only snapshot of a target's value, pressure and durations.

    Durations are already raster-aligned, in milliseconds.
    """

    target_id: str
    value: float
    max_value: float
    pressure: float
    min_pressure: float
    durations: dict[OperationType, int] = field(default_factory=dict)
    growth_rate: float = 0.03  # Per-unit growth parameter for the analyzer
    success_chance: float = 1.0  # Probability an extract unit succeeds

    def __post_init__(self):
        if self.max_value <= 0:
            raise ValueError(f"{self.target_id}: max_value must be positive")
        if not 0.0 <= self.value <= self.max_value:
            raise ValueError(
                f"{self.target_id}: value {self.value} outside [0, {self.max_value}]"
            )
        if self.pressure < self.min_pressure:
            raise ValueError(
                f"{self.target_id}: pressure {self.pressure} below floor "
                f"{self.min_pressure}"
            )
        if not 0.0 <= self.success_chance <= 1.0:
            raise ValueError(f"{self.target_id}: success_chance outside [0, 1]")
        missing = [op.name for op in OperationType if op not in self.durations]
        if missing:
            raise ValueError(f"{self.target_id}: missing durations for {missing}")

    @classmethod
    def from_raw(
        cls,
        target_id: str,
        value: float,
        max_value: float,
        pressure: float,
        min_pressure: float,
        raw_durations: dict[OperationType, float],
        tick: int = TICK_MS,
        **kwargs,
    ) -> "TargetSnapshot":
        """Build a snapshot from unaligned duration readings."""
        durations = {
            OperationType(op): raster(d, tick) for op, d in raw_durations.items()
        }
        return cls(
            target_id=target_id,
            value=value,
            max_value=max_value,
            pressure=pressure,
            min_pressure=min_pressure,
            durations=durations,
            **kwargs,
        )

    @property
    def pressure_delta(self) -> float:
        return self.pressure - self.min_pressure

    @property
    def value_ratio(self) -> float:
        return self.value / self.max_value

    def duration(self, operation: OperationType) -> int:
        return self.durations[OperationType.parse(operation)]

    @property
    def slowest_duration(self) -> int:
        return max(self.durations.values())

    def is_farming_ready(self, thresholds: FarmingThresholds | None = None) -> bool:
        """Near-optimal targets are farmed, all others are prepared."""
        thresholds = thresholds or FarmingThresholds()
        return (
            self.value_ratio > thresholds.value_ratio
            and self.pressure_delta < thresholds.pressure_delta
        )
