"""Simulated network and scenarios for running control loops offline."""

from batch_farming.simulation.network import (
    NetworkStats,
    SimTarget,
    SimulatedNetwork,
    SimWorker,
)
from batch_farming.simulation.scenarios import (
    SCENARIOS,
    ScenarioConfig,
    get_scenario,
    list_scenarios,
)

__all__ = [
    "SimulatedNetwork",
    "SimTarget",
    "SimWorker",
    "NetworkStats",
    "ScenarioConfig",
    "SCENARIOS",
    "get_scenario",
    "list_scenarios",
]
