"""Run metrics for simulated control-loop runs.

Per-run figures come from the loop's cycle reports and the simulated
network's job statistics. Runs over several seeds are aggregated with the
interquartile mean and a bootstrap confidence interval, which are less
sensitive to an occasional pathological seed than the plain mean.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from batch_farming.control.diagnostics import CycleReport
from batch_farming.planning.batch import Strategy
from batch_farming.simulation.network import NetworkStats


def compute_iqm(values: list[float]) -> float:
    """Compute interquartile mean (IQM).

    Args:
        values: Metric values across runs or cycles.

    Returns:
        Interquartile mean, or the plain mean with fewer than 4 values.
    """
    if len(values) < 4:
        return float(np.mean(values)) if len(values) else 0.0

    sorted_vals = np.sort(values)
    n = len(sorted_vals)
    q1_idx = n // 4
    q3_idx = 3 * n // 4
    return float(np.mean(sorted_vals[q1_idx:q3_idx]))


def compute_bootstrap_ci(
    values: list[float],
    confidence: float = 0.95,
    n_bootstrap: int = 2000,
    rng: np.random.Generator | None = None,
) -> tuple[float, float]:
    """Bootstrap confidence interval of the IQM.

    Returns:
        (lower_bound, upper_bound)
    """
    if len(values) < 2:
        val = values[0] if values else 0.0
        return (val, val)

    rng = rng or np.random.default_rng()
    arr = np.asarray(values, dtype=np.float64)
    samples = rng.choice(arr, size=(n_bootstrap, len(arr)), replace=True)
    iqms = [compute_iqm(row.tolist()) for row in samples]

    alpha = 1 - confidence
    lower = float(np.percentile(iqms, 100 * alpha / 2))
    upper = float(np.percentile(iqms, 100 * (1 - alpha / 2)))
    return (lower, upper)


@dataclass
class RunMetrics:
    """Metrics from a single simulated run."""

    scenario_name: str
    mode: str = "timed"
    seed: int | None = None
    reports: list[CycleReport] = field(default_factory=list)
    stats: NetworkStats = field(default_factory=NetworkStats)
    total_extracted: float = 0.0
    sim_time_ms: float = 0.0

    @property
    def cycles(self) -> int:
        return len(self.reports)

    @property
    def dispatch_cycles(self) -> int:
        return sum(1 for r in self.reports if r.dispatched_total > 0)

    @property
    def shortfall_cycles(self) -> int:
        return sum(1 for r in self.reports if r.shortfall > 0)

    @property
    def first_farming_cycle(self) -> int | None:
        """Cycle at which the target was first farmed, None if never."""
        for r in self.reports:
            if r.strategy == Strategy.FARMING.value:
                return r.cycle
        return None

    @property
    def value_ratios(self) -> np.ndarray:
        return np.array([r.value_ratio for r in self.reports], dtype=np.float64)

    @property
    def pressure_deltas(self) -> np.ndarray:
        return np.array([r.pressure_delta for r in self.reports], dtype=np.float64)

    @property
    def utilizations(self) -> np.ndarray:
        return np.array([r.utilization for r in self.reports], dtype=np.float64)

    @property
    def extraction_rate(self) -> float:
        """Value extracted per simulated second."""
        if self.sim_time_ms <= 0:
            return 0.0
        return self.total_extracted / (self.sim_time_ms / 1000.0)

    @property
    def time_miss_rate(self) -> float:
        """Share of launched jobs that aborted without firing."""
        if self.stats.launched == 0:
            return 0.0
        return self.stats.time_misses / self.stats.launched

    @property
    def utilization_iqm(self) -> float:
        dispatched = [r.utilization for r in self.reports if r.dispatched_total > 0]
        return compute_iqm(dispatched)

    def summary(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario_name,
            "mode": self.mode,
            "seed": self.seed,
            "cycles": self.cycles,
            "dispatch_cycles": self.dispatch_cycles,
            "shortfall_cycles": self.shortfall_cycles,
            "first_farming_cycle": self.first_farming_cycle,
            "total_extracted": self.total_extracted,
            "extraction_rate": self.extraction_rate,
            "final_value_ratio": float(self.value_ratios[-1]) if self.cycles else 0.0,
            "final_pressure_delta": float(self.pressure_deltas[-1]) if self.cycles else 0.0,
            "utilization_iqm": self.utilization_iqm,
            "jobs_launched": self.stats.launched,
            "jobs_completed": self.stats.completed,
            "time_misses": self.stats.time_misses,
            "time_miss_rate": self.time_miss_rate,
            "wrong_types": self.stats.wrong_types,
            "rejected": self.stats.rejected,
            "sim_time_ms": self.sim_time_ms,
        }


@dataclass
class ScenarioMetrics:
    """Runs of one scenario over several seeds."""

    scenario_name: str
    runs: list[RunMetrics] = field(default_factory=list)
    _bootstrap_rng_seed: int = 42

    @property
    def n_runs(self) -> int:
        return len(self.runs)

    def _rates(self) -> list[float]:
        return [r.extraction_rate for r in self.runs]

    @property
    def extraction_rate_iqm(self) -> float:
        return compute_iqm(self._rates())

    @property
    def extraction_rate_ci(self) -> tuple[float, float]:
        rng = np.random.default_rng(self._bootstrap_rng_seed)
        return compute_bootstrap_ci(self._rates(), rng=rng)

    @property
    def mean_time_miss_rate(self) -> float:
        if not self.runs:
            return 0.0
        return float(np.mean([r.time_miss_rate for r in self.runs]))

    def summary(self) -> dict[str, Any]:
        ci_low, ci_high = self.extraction_rate_ci
        return {
            "scenario": self.scenario_name,
            "n_runs": self.n_runs,
            "extraction_rate_iqm": self.extraction_rate_iqm,
            "extraction_rate_ci_low": ci_low,
            "extraction_rate_ci_high": ci_high,
            "mean_time_miss_rate": self.mean_time_miss_rate,
            "runs": [r.summary() for r in self.runs],
        }
