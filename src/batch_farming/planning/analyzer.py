"""Yield, growth and pressure oracles consumed by the batch planner.

The planner depends only on the `Analyzer` protocol. `FormulaAnalyzer`
is the closed-form implementation shared with the simulated network so
planned batches and simulated effects agree.
"""

import math
from typing import Protocol

from batch_farming.errors import UndefinedYieldError
from batch_farming.state.target import TargetSnapshot

# Per-unit pressure effects
EXTRACT_PRESSURE_PER_UNIT = 0.002
REPLENISH_PRESSURE_PER_UNIT = 0.004
COUNTER_REDUCTION_PER_UNIT = 0.05

# Pressure level at which a target no longer yields or grows
PRESSURE_CEILING = 100.0


class Analyzer(Protocol):
    """Oracle functions describing how operations affect a target."""

    def extract_yield_per_unit(self, target: TargetSnapshot) -> float: ...

    def growth_units(
        self, target: TargetSnapshot, factor: float, cores: int = 1
    ) -> float: ...

    def extract_pressure(self, units: int) -> float: ...

    def replenish_pressure(self, units: int) -> float: ...

    def counter_reduction_per_unit(self, cores: int = 1) -> float: ...


def core_bonus(cores: int) -> float:
    """Multiplier for replenish and counter-pressure on multi-core workers."""
    return 1.0 + (max(cores, 1) - 1) / 16.0


class FormulaAnalyzer:
    """Closed-form analyzer.

    - Extract removes `base_yield * headroom` of the current value per unit,
      where headroom = (ceiling - pressure) / ceiling.
    - Replenish multiplies value by `1 + growth_rate * headroom * core_bonus`
      per unit (compounding), so units needed for a factor f are
      log(f) / log(per-unit multiplier).
    - Pressure effects are linear in units.
    """

    def __init__(self, base_yield: float = 0.002):
        if base_yield < 0:
            raise ValueError(f"base_yield must be >= 0; got {base_yield}")
        self.base_yield = base_yield

    @staticmethod
    def _headroom(target: TargetSnapshot) -> float:
        return max(0.0, (PRESSURE_CEILING - target.pressure) / PRESSURE_CEILING)

    def extract_yield_per_unit(self, target: TargetSnapshot) -> float:
        y = self.base_yield * self._headroom(target)
        if y <= 0 or not math.isfinite(y):
            raise UndefinedYieldError(
                f"{target.target_id}: zero extract yield at pressure {target.pressure}"
            )
        return y

    def growth_log_per_unit(self, target: TargetSnapshot, cores: int = 1) -> float:
        rate = target.growth_rate * self._headroom(target) * core_bonus(cores)
        if rate <= 0 or not math.isfinite(rate):
            raise UndefinedYieldError(
                f"{target.target_id}: no growth at pressure {target.pressure}"
            )
        return math.log1p(rate)

    def growth_units(
        self, target: TargetSnapshot, factor: float, cores: int = 1
    ) -> float:
        """Fractional units needed to multiply the target's value by `factor`."""
        if not math.isfinite(factor) or factor <= 0:
            raise UndefinedYieldError(f"{target.target_id}: growth factor {factor}")
        if factor <= 1.0:
            return 0.0
        return math.log(factor) / self.growth_log_per_unit(target, cores)

    def growth_multiplier(
        self, target: TargetSnapshot, units: int, cores: int = 1
    ) -> float:
        """Value multiplier achieved by `units` replenish units."""
        if units <= 0:
            return 1.0
        try:
            return math.exp(units * self.growth_log_per_unit(target, cores))
        except UndefinedYieldError:
            return 1.0

    def extract_pressure(self, units: int) -> float:
        return EXTRACT_PRESSURE_PER_UNIT * max(units, 0)

    def replenish_pressure(self, units: int) -> float:
        return REPLENISH_PRESSURE_PER_UNIT * max(units, 0)

    def counter_reduction_per_unit(self, cores: int = 1) -> float:
        return COUNTER_REDUCTION_PER_UNIT * core_bonus(cores)
