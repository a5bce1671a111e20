"""Evaluation of simulated runs: metrics, runner and plots."""

from batch_farming.evaluation.metrics import (
    RunMetrics,
    ScenarioMetrics,
    compute_bootstrap_ci,
    compute_iqm,
)
from batch_farming.evaluation.runner import RunnerConfig, ScenarioRunner

__all__ = [
    "RunMetrics",
    "ScenarioMetrics",
    "compute_iqm",
    "compute_bootstrap_ci",
    "RunnerConfig",
    "ScenarioRunner",
]
