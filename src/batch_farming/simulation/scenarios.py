"""Scenario definitions for simulated runs.

Defines five scenarios:
1. Steady Farming - target already near optimal, ample capacity
2. Preparation - depleted, high-pressure target that must be prepared first
3. Constrained Capacity - a single small worker, batches get clamped or skipped
4. Heterogeneous Pool - many workers of mixed size and core count
5. Jittery Durations - duration readings randomly one tick long
"""

from dataclasses import dataclass, field, replace

from batch_farming.config import FarmingConfig, LoopConfig
from batch_farming.simulation.network import SimTarget, SimulatedNetwork, SimWorker
from batch_farming.timing.clock import FakeClock


@dataclass
class ScenarioConfig:
    """Configuration for a simulated scenario."""

    name: str
    description: str
    targets: list[SimTarget]
    workers: list[SimWorker]
    config: FarmingConfig = field(default_factory=FarmingConfig)
    cycles: int = 40
    jitter_prob: float = 0.0

    def create_network(self, clock: FakeClock, seed: int | None = None) -> SimulatedNetwork:
        """Fresh network for this scenario; scenario objects are never mutated."""
        return create_scenario_network(self, clock, seed=seed)


def _create_steady_farming() -> ScenarioConfig:
    """Steady Farming scenario - the target starts farming-ready.

    Capacity comfortably exceeds one farming batch, so every cycle should
    dispatch a full batch and the target should stay near optimal.
    """
    return ScenarioConfig(
        name="steady_farming",
        description="Near-optimal target, capacity for a full farming batch",
        targets=[
            SimTarget(
                target_id="alpha",
                value=9_800.0,
                max_value=10_000.0,
                pressure=5.2,
                min_pressure=5.0,
            )
        ],
        workers=[
            SimWorker("w-large", total_capacity=512.0, cores=2),
            SimWorker("w-medium", total_capacity=256.0),
        ],
        cycles=30,
    )


def _create_preparation() -> ScenarioConfig:
    """Preparation scenario - depleted target far above its pressure floor.

    The loop must run preparation batches until the target becomes
    farming-ready, then switch to farming.
    """
    return ScenarioConfig(
        name="preparation",
        description="Depleted target at high pressure, prepared then farmed",
        targets=[
            SimTarget(
                target_id="beta",
                value=500.0,
                max_value=20_000.0,
                pressure=25.0,
                min_pressure=5.0,
            )
        ],
        workers=[
            SimWorker("w-1", total_capacity=256.0),
            SimWorker("w-2", total_capacity=256.0),
            SimWorker("w-3", total_capacity=128.0),
        ],
        cycles=40,
    )


def _create_constrained_capacity() -> ScenarioConfig:
    """Constrained Capacity scenario - one worker too small for a farming batch.

    Preparation batches are clamped to the available units; farming
    batches that do not fit are skipped with a recorded shortfall.
    """
    return ScenarioConfig(
        name="constrained_capacity",
        description="Single 64-capacity worker, clamped and skipped batches",
        targets=[
            SimTarget(
                target_id="gamma",
                value=4_000.0,
                max_value=8_000.0,
                pressure=12.0,
                min_pressure=3.0,
            )
        ],
        workers=[SimWorker("w-small", total_capacity=64.0)],
        cycles=30,
    )


def _create_heterogeneous_pool() -> ScenarioConfig:
    """Heterogeneous Pool scenario - batches split across mixed workers."""
    return ScenarioConfig(
        name="heterogeneous_pool",
        description="Five workers of mixed capacity and core count",
        targets=[
            SimTarget(
                target_id="delta",
                value=6_000.0,
                max_value=12_000.0,
                pressure=9.0,
                min_pressure=4.0,
                growth_rate=0.025,
            )
        ],
        workers=[
            SimWorker("w-8", total_capacity=8.0),
            SimWorker("w-32", total_capacity=32.0),
            SimWorker("w-64", total_capacity=64.0, cores=2),
            SimWorker("w-128", total_capacity=128.0, cores=4),
            SimWorker("w-512", total_capacity=512.0, cores=8),
        ],
        cycles=40,
    )


def _create_jittery_durations() -> ScenarioConfig:
    """Jittery Durations scenario - one-tick duration noise on every reading.

    Jobs may fire one tick ahead of their slot, so a reading that jumps
    by a tick between polls still lands in order instead of missing.
    """
    return ScenarioConfig(
        name="jittery_durations",
        description="Steady farming with 20% one-tick duration jitter",
        targets=[
            SimTarget(
                target_id="epsilon",
                value=9_500.0,
                max_value=10_000.0,
                pressure=5.0,
                min_pressure=5.0,
            )
        ],
        workers=[
            SimWorker("w-large", total_capacity=512.0, cores=2),
            SimWorker("w-medium", total_capacity=256.0),
        ],
        cycles=30,
        jitter_prob=0.2,
    )


# Pre-defined scenarios for simulated runs
SCENARIOS: dict[str, ScenarioConfig] = {
    "steady_farming": _create_steady_farming(),
    "preparation": _create_preparation(),
    "constrained_capacity": _create_constrained_capacity(),
    "heterogeneous_pool": _create_heterogeneous_pool(),
    "jittery_durations": _create_jittery_durations(),
}


def create_scenario_network(
    scenario: ScenarioConfig,
    clock: FakeClock,
    seed: int | None = None,
) -> SimulatedNetwork:
    """Create a network instance for a scenario.

    Args:
        scenario: Scenario configuration.
        clock: Clock the network follows.
        seed: Seed for duration jitter.

    Returns:
        SimulatedNetwork with copies of the scenario's targets and workers.
    """
    timing = scenario.config.timing
    return SimulatedNetwork(
        targets=[replace(t) for t in scenario.targets],
        workers=[replace(w) for w in scenario.workers],
        clock=clock,
        tick_ms=timing.tick_ms,
        poll_interval_ms=timing.poll_interval_ms,
        jitter_prob=scenario.jitter_prob,
        seed=seed,
        jitter_slack_ticks=timing.jitter_slack_ticks,
    )


def scenario_config(scenario: ScenarioConfig, mode: str | None = None) -> FarmingConfig:
    """Scenario config pinned to the scenario's first target."""
    loop = scenario.config.loop
    return replace(
        scenario.config,
        loop=LoopConfig(
            max_iterations=loop.max_iterations,
            target_id=loop.target_id or scenario.targets[0].target_id,
            mode=mode or loop.mode,
        ),
    )


def get_scenario(name: str) -> ScenarioConfig:
    """Get scenario by name.

    Raises:
        KeyError: If scenario not found.
    """
    if name not in SCENARIOS:
        available = ", ".join(SCENARIOS.keys())
        raise KeyError(f"Unknown scenario '{name}'. Available: {available}")
    return SCENARIOS[name]


def list_scenarios() -> list[str]:
    """List all available scenario names."""
    return list(SCENARIOS.keys())
