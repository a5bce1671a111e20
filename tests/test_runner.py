"""Tests for the scenario runner."""

import json
from dataclasses import replace

import numpy as np
import pytest

from batch_farming.config import FarmingConfig, PlannerConfig
from batch_farming.evaluation.metrics import RunMetrics, ScenarioMetrics
from batch_farming.evaluation.runner import RunnerConfig, ScenarioRunner, _json_serializer
from batch_farming.simulation.scenarios import SCENARIOS


class TestRunnerConfig:
    """Tests for RunnerConfig dataclass."""

    def test_default_values(self):
        config = RunnerConfig()
        assert config.n_seeds == 3
        assert config.base_seed == 42
        assert config.mode == "timed"
        assert config.cycles is None

    def test_custom_values(self):
        config = RunnerConfig(n_seeds=1, base_seed=7, mode="continuous", cycles=5)
        assert config.n_seeds == 1
        assert config.mode == "continuous"


class TestScenarioRunner:
    """Tests for ScenarioRunner."""

    @pytest.fixture
    def runner(self):
        return ScenarioRunner(RunnerConfig(n_seeds=2, cycles=4))

    def test_run_once(self, runner):
        metrics = runner.run_once(SCENARIOS["steady_farming"], seed=42)

        assert isinstance(metrics, RunMetrics)
        assert metrics.cycles == 4
        assert metrics.first_farming_cycle == 1
        assert metrics.total_extracted > 0
        assert metrics.sim_time_ms > 0
        assert metrics.stats.time_misses == 0

    def test_runs_are_independent(self, runner):
        first = runner.run_once(SCENARIOS["steady_farming"], seed=42)
        second = runner.run_once(SCENARIOS["steady_farming"], seed=42)
        assert first.total_extracted == pytest.approx(second.total_extracted)
        assert SCENARIOS["steady_farming"].targets[0].extracted == 0.0

    def test_run_scenario_uses_seeds(self, runner):
        result = runner.run_scenario(SCENARIOS["constrained_capacity"])
        assert isinstance(result, ScenarioMetrics)
        assert [r.seed for r in result.runs] == [42, 1042]

    def test_constrained_capacity_reports_shortfall(self, runner):
        metrics = runner.run_once(SCENARIOS["constrained_capacity"], seed=1)
        assert metrics.stats.rejected == 0
        for report in metrics.reports:
            if report.shortfall > 0:
                assert report.dispatched_total == 0

    def test_constrained_capacity_scaled_batches_extract(self):
        scenario = replace(
            SCENARIOS["constrained_capacity"],
            config=FarmingConfig(planner=PlannerConfig(scale_to_capacity=True)),
        )
        runner = ScenarioRunner(RunnerConfig(n_seeds=1))
        metrics = runner.run_once(scenario, seed=1)
        assert metrics.cycles == 30
        assert metrics.total_extracted > 0
        assert all(report.shortfall == 0 for report in metrics.reports)

    def test_continuous_mode(self):
        runner = ScenarioRunner(RunnerConfig(n_seeds=1, cycles=20, mode="continuous"))
        metrics = runner.run_once(SCENARIOS["steady_farming"], seed=42)
        # 20 periods of 1200ms polled every 150ms
        assert metrics.cycles == 160
        assert metrics.mode == "continuous"
        assert metrics.stats.launched > 0

    def test_jittery_durations_rarely_miss(self):
        runner = ScenarioRunner(RunnerConfig(n_seeds=2, cycles=10))
        result = runner.run_scenario(SCENARIOS["jittery_durations"])
        assert all(run.stats.fired > 0 for run in result.runs)
        assert result.mean_time_miss_rate < 0.05

    def test_run_all_and_save(self, runner, tmp_path):
        results = runner.run_all_scenarios(
            scenarios=["steady_farming", "preparation"], seeds=[1]
        )
        assert set(results) == {"steady_farming", "preparation"}

        path = runner.save_results(tmp_path)
        assert path.name == "simulation_results.json"
        loaded = ScenarioRunner.load_results(tmp_path)
        assert loaded["steady_farming"]["n_runs"] == 1
        assert loaded["preparation"]["runs"][0]["scenario"] == "preparation"

        with open(path) as f:
            assert json.load(f) == loaded


class TestJsonSerializer:
    """Tests for _json_serializer()."""

    def test_numpy_types(self):
        assert _json_serializer(np.int64(3)) == 3
        assert _json_serializer(np.float32(0.5)) == 0.5
        assert _json_serializer(np.arange(3)) == [0, 1, 2]

    def test_unknown_type(self):
        with pytest.raises(TypeError):
            _json_serializer(object())
