"""Tests for the simulated network and scenario definitions."""

import math

import pytest

from batch_farming.planning.analyzer import FormulaAnalyzer
from batch_farming.scheduling.jobs import JobState
from batch_farming.simulation.network import SimTarget, SimulatedNetwork, SimWorker
from batch_farming.simulation.scenarios import (
    SCENARIOS,
    ScenarioConfig,
    get_scenario,
    list_scenarios,
    scenario_config,
)
from batch_farming.state.operations import OperationType
from batch_farming.timing.clock import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def network(clock):
    target = SimTarget(
        target_id="t1",
        value=5000.0,
        max_value=10000.0,
        pressure=5.0,
        min_pressure=5.0,
        base_duration_ms=1000.0,
    )
    return SimulatedNetwork([target], [SimWorker("w1", total_capacity=256.0, cores=1)], clock)


class TestSnapshots:
    """Tests for snapshot and discovery reads."""

    def test_discovery(self, network):
        assert network.target_ids() == ["t1"]
        assert network.worker_ids() == ["w1"]

    def test_target_snapshot_durations(self, network):
        snapshot = network.target_snapshot("t1")
        # 1000 * (1 + 5 / 50) = 1100 -> 1200 on the raster
        assert snapshot.duration(OperationType.EXTRACT) == 1200
        assert snapshot.duration(OperationType.REPLENISH) == 3600
        assert snapshot.duration(OperationType.COUNTER) == 4400
        assert snapshot.value_ratio == pytest.approx(0.5)

    def test_jitter_adds_one_tick(self, clock):
        target = SimTarget("t1", 1.0, 2.0, 5.0, 5.0, base_duration_ms=1000.0)
        network = SimulatedNetwork([target], [], clock, jitter_prob=1.0, seed=1)
        assert network.target_snapshot("t1").duration(OperationType.EXTRACT) == 1400

    def test_unknown_ids(self, network):
        with pytest.raises(KeyError):
            network.target_snapshot("nope")
        with pytest.raises(KeyError):
            network.worker_snapshot("nope")


class TestLaunch:
    """Tests for job launch and completion."""

    def test_timed_job_fires_on_finish_time(self, network, clock):
        handle = network.launch("counter", "w1", 2, "t1", finish_time=4800, run_id=7)
        assert handle is not None
        assert network.worker_snapshot("w1").committed_capacity == pytest.approx(3.5)

        clock.advance(5000)
        # Poll 0 predicts 4400; poll 150 predicts 4600, one tick inside the slack
        assert handle.job.state == JobState.FIRED
        assert handle.job.fired_at == 150
        assert handle.completed_at == pytest.approx(4550)
        assert network.worker_snapshot("w1").committed_capacity == 0.0
        assert network.stats.completed == 1

    def test_extract_removes_value_and_adds_pressure(self, network, clock):
        network.launch("extract", "w1", 100, "t1")
        clock.advance(2000)
        target = network.targets["t1"]
        # 100 units at 0.002 * 0.95 each
        assert target.value == pytest.approx(5000.0 * (1 - 0.19))
        assert target.extracted == pytest.approx(950.0)
        assert target.pressure == pytest.approx(5.2)

    def test_replenish_grows_value(self, network, clock):
        network.launch("replenish", "w1", 10, "t1")
        clock.advance(4000)
        expected = 5000.0 * math.exp(10 * math.log1p(0.03 * 0.95))
        assert network.targets["t1"].value == pytest.approx(expected)

    def test_replenish_caps_at_max(self, network, clock):
        network.launch("replenish", "w1", 100, "t1")
        clock.advance(4000)
        assert network.targets["t1"].value == 10000.0

    def test_counter_stops_at_floor(self, network, clock):
        network.targets["t1"].pressure = 6.0
        network.launch("counter", "w1", 100, "t1")
        clock.advance(6000)
        assert network.targets["t1"].pressure == 5.0

    def test_exact_fire_without_slack(self, clock):
        target = SimTarget("t1", 5000.0, 10000.0, 5.0, 5.0, base_duration_ms=1000.0)
        network = SimulatedNetwork(
            [target], [SimWorker("w1", 256.0)], clock, jitter_slack_ticks=0
        )
        handle = network.launch("counter", "w1", 2, "t1", finish_time=4800)
        clock.advance(5000)
        # Polls at 0, 150, 300: 300 + 4400 lands on 4800
        assert handle.job.fired_at == 300
        assert handle.completed_at == pytest.approx(4700)

    @pytest.mark.parametrize(
        "slack, expected",
        [(1, JobState.FIRED), (0, JobState.ABORTED_TIME_MISS)],
    )
    def test_jittered_poll_after_slack_window(self, clock, slack, expected):
        target = SimTarget("t1", 5000.0, 10000.0, 5.0, 5.0, base_duration_ms=1000.0)
        network = SimulatedNetwork(
            [target], [SimWorker("w1", 256.0)], clock, jitter_slack_ticks=slack
        )
        handle = network.launch("counter", "w1", 2, "t1", finish_time=4800)
        # Poll 150 predicts 4600, one tick short of the finish time
        clock.advance(150)
        # Poll 300 reads 4600 instead of 4400 and predicts 5000
        network.jitter_prob = 1.0
        clock.advance(4850)
        assert handle.job.state == expected
        if slack:
            assert handle.job.fired_at == 150
            assert handle.completed_at == pytest.approx(4550)
            assert network.stats.time_misses == 0
        else:
            assert network.stats.time_misses == 1

    def test_jobs_run_through_deadline_tasks(self, network, clock):
        handle = network.launch("extract", "w1", 1, "t1", finish_time=1600)
        assert handle.task.job is handle.job
        clock.advance(2000)
        assert handle.task.job.state == JobState.FIRED
        assert handle.task.job.fired_at == 150

    def test_past_finish_time_is_a_time_miss(self, network):
        handle = network.launch("counter", "w1", 1, "t1", finish_time=200)
        assert handle.job.state == JobState.ABORTED_TIME_MISS
        assert network.stats.time_misses == 1
        assert network.worker_snapshot("w1").committed_capacity == 0.0

    def test_wrong_type(self, network):
        handle = network.launch("hack", "w1", 1, "t1")
        assert handle.job.state == JobState.ABORTED_WRONG_TYPE
        assert network.stats.wrong_types == 1
        assert network.in_flight == 0

    def test_zero_units_is_noop(self, network):
        assert network.launch("extract", "w1", 0, "t1") is None
        assert network.stats.launched == 0
        assert network.stats.rejected == 0

    def test_over_capacity_rejected(self, network):
        assert network.launch("counter", "w1", 200, "t1") is None
        assert network.stats.rejected == 1

    def test_unknown_worker_rejected(self, network):
        assert network.launch("counter", "w9", 1, "t1") is None
        assert network.stats.rejected == 1

    def test_effects_land_in_time_order(self, network, clock):
        network.targets["t1"].pressure = 7.0
        # Untimed jobs complete after their own duration
        network.launch("extract", "w1", 10, "t1")
        network.launch("counter", "w1", 100, "t1")
        clock.advance(10000)
        outcomes = sorted(network.stats.outcomes, key=lambda o: o.completed_at)
        assert [o.operation for o in outcomes] == [OperationType.EXTRACT, OperationType.COUNTER]

    def test_shared_analyzer(self, clock):
        analyzer = FormulaAnalyzer(base_yield=0.01)
        net = SimulatedNetwork([], [], clock, analyzer=analyzer)
        assert net.analyzer is analyzer

    def test_invalid_jitter(self, clock):
        with pytest.raises(ValueError):
            SimulatedNetwork([], [], clock, jitter_prob=1.5)


class TestScenarios:
    """Tests for pre-defined scenarios."""

    def test_all_scenarios_exist(self):
        expected = [
            "steady_farming",
            "preparation",
            "constrained_capacity",
            "heterogeneous_pool",
            "jittery_durations",
        ]
        assert list_scenarios() == expected
        for name in expected:
            assert isinstance(SCENARIOS[name], ScenarioConfig)

    def test_steady_farming_starts_ready(self, clock):
        scenario = get_scenario("steady_farming")
        network = scenario.create_network(clock)
        target = network.target_snapshot(scenario.targets[0].target_id)
        assert target.is_farming_ready(scenario.config.thresholds)

    def test_preparation_starts_unready(self, clock):
        scenario = get_scenario("preparation")
        target = scenario.create_network(clock).target_snapshot("beta")
        assert not target.is_farming_ready()

    def test_networks_do_not_share_state(self, clock):
        scenario = get_scenario("steady_farming")
        network = scenario.create_network(clock)
        network.targets["alpha"].value = 1.0
        network.workers["w-large"].committed = 100.0
        assert scenario.targets[0].value == 9_800.0
        assert scenario.workers[0].committed == 0.0

    def test_scenario_config_pins_target(self):
        config = scenario_config(get_scenario("preparation"), mode="continuous")
        assert config.loop.target_id == "beta"
        assert config.loop.mode == "continuous"
        assert get_scenario("preparation").config.loop.target_id is None

    def test_unknown_scenario(self):
        with pytest.raises(KeyError, match="Available"):
            get_scenario("nope")
