"""Scenario runner: a control loop against a simulated network on a FakeClock."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from batch_farming.control.diagnostics import DiagnosticsRecorder, LoggingDiagnostics
from batch_farming.control.loop import ControlLoop
from batch_farming.evaluation.metrics import RunMetrics, ScenarioMetrics
from batch_farming.simulation.scenarios import (
    SCENARIOS,
    ScenarioConfig,
    create_scenario_network,
    scenario_config,
)
from batch_farming.timing.clock import FakeClock

logger = logging.getLogger(__name__)


@dataclass
class RunnerConfig:
    """Configuration for scenario runs."""

    n_seeds: int = 3
    base_seed: int = 42
    mode: str = "timed"
    cycles: int | None = None  # None uses the scenario's cycle count
    log_cycles: bool = False  # Publish every cycle report to the logger


class ScenarioRunner:
    """Runs scenarios over several seeds and collects metrics."""

    def __init__(self, config: RunnerConfig | None = None):
        self.config = config or RunnerConfig()
        self._results: dict[str, ScenarioMetrics] = {}

    def run_once(self, scenario: ScenarioConfig, seed: int | None = None) -> RunMetrics:
        """Run one scenario with one seed.

        Returns:
            Metrics of the run, including every cycle report.
        """
        clock = FakeClock()
        network = create_scenario_network(scenario, clock, seed=seed)
        recorder = DiagnosticsRecorder()
        sinks = [recorder]
        if self.config.log_cycles:
            sinks.append(LoggingDiagnostics())

        loop = ControlLoop(
            source=network,
            discovery=network,
            launcher=network,
            config=scenario_config(scenario, self.config.mode),
            clock=clock,
            analyzer=network.analyzer,
            sinks=sinks,
            name=scenario.name,
        )
        cycles = self.config.cycles or scenario.cycles
        if self.config.mode == "continuous":
            # One continuous cycle is a single poll; scale to cover as many batches
            period = loop.scheduler.period
            poll = scenario.config.timing.poll_interval_ms
            cycles = int(np.ceil(cycles * max(period, 1) / poll))
        loop.run(max_iterations=cycles)

        metrics = RunMetrics(
            scenario_name=scenario.name,
            mode=self.config.mode,
            seed=seed,
            reports=list(recorder.reports),
            stats=network.stats,
            total_extracted=float(sum(t.extracted for t in network.targets.values())),
            sim_time_ms=clock.now_ms(),
        )
        logger.info(
            "%s (seed %s): %d cycles, extracted %.1f, %d time misses",
            scenario.name,
            seed,
            metrics.cycles,
            metrics.total_extracted,
            network.stats.time_misses,
        )
        return metrics

    def run_scenario(
        self, scenario: ScenarioConfig, seeds: list[int] | None = None
    ) -> ScenarioMetrics:
        if seeds is None:
            seeds = [self.config.base_seed + i * 1000 for i in range(self.config.n_seeds)]
        result = ScenarioMetrics(scenario_name=scenario.name)
        for seed in seeds:
            result.runs.append(self.run_once(scenario, seed))
        return result

    def run_all_scenarios(
        self, scenarios: list[str] | None = None, seeds: list[int] | None = None
    ) -> dict[str, ScenarioMetrics]:
        if scenarios is None:
            scenarios = list(SCENARIOS.keys())
        results = {}
        for name in scenarios:
            results[name] = self.run_scenario(SCENARIOS[name], seeds)
        self._results = results
        return results

    def save_results(
        self,
        output_dir: str | Path,
        results: dict[str, ScenarioMetrics] | None = None,
    ) -> Path:
        """Write a summary JSON to `output_dir` and return its path."""
        results = results or self._results
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        summary = {name: result.summary() for name, result in results.items()}
        path = output_dir / "simulation_results.json"
        with open(path, "w") as f:
            json.dump(summary, f, indent=2, default=_json_serializer)
        return path

    @staticmethod
    def load_results(input_dir: str | Path) -> dict[str, Any]:
        input_dir = Path(input_dir)
        with open(input_dir / "simulation_results.json") as f:
            return json.load(f)


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for numpy types."""
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
