"""Tunable constants for planning, timing and the control loop.

Margins and thresholds are empirically tuned slack for nonlinear yield and
growth curves. Changing them is a tuning decision.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from batch_farming.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class FarmingThresholds:
    """Farming-ready predicate limits.

    A target is farming-ready when its value ratio is above `value_ratio`
    AND its pressure delta is below `pressure_delta`.
    """

    value_ratio: float = 0.9
    pressure_delta: float = 1.0

    def __post_init__(self):
        if not 0.0 <= self.value_ratio <= 1.0:
            raise ConfigError(f"value_ratio must be in [0, 1]; got {self.value_ratio}")
        if self.pressure_delta < 0:
            raise ConfigError(f"pressure_delta must be >= 0; got {self.pressure_delta}")


@dataclass
class PlannerConfig:
    """Batch sizing parameters."""

    extract_fraction: float = 0.5  # Share of current value removed per batch
    grow_margin: float = 1.2  # Safety multiplier on replenish units
    counter_margin: float = 1.3  # Safety multiplier on counter-pressure units
    scale_to_capacity: bool = False  # Shrink farming batches to fit free capacity

    def __post_init__(self):
        if not 0.0 < self.extract_fraction < 1.0:
            raise ConfigError(
                f"extract_fraction must be in (0, 1); got {self.extract_fraction}"
            )
        if self.grow_margin < 1.0:
            raise ConfigError(f"grow_margin must be >= 1.0; got {self.grow_margin}")
        if self.counter_margin < 1.0:
            raise ConfigError(
                f"counter_margin must be >= 1.0; got {self.counter_margin}"
            )


@dataclass
class TimingConfig:
    """Clock raster and loop pacing, all in milliseconds."""

    tick_ms: int = 200
    time_budget_ms: int = 400  # T: spacing between operation finishes
    slots: int = 3  # k: P = k * T, 4 reserves a slot for the control cycle
    poll_interval_ms: int = 150  # Timed job re-check interval, below one tick
    min_sleep_ms: int = 200  # Floor on the control loop wait
    safety_margin_ms: int = 400  # Added after the slowest in-flight operation
    jitter_slack_ticks: int = 1  # Ticks a timed job may fire before its finish time

    def __post_init__(self):
        if self.tick_ms <= 0:
            raise ConfigError(f"tick_ms must be positive; got {self.tick_ms}")
        if self.time_budget_ms <= 0 or self.time_budget_ms % self.tick_ms:
            raise ConfigError(
                f"time_budget_ms must be a positive multiple of tick_ms "
                f"({self.tick_ms}); got {self.time_budget_ms}"
            )
        if self.slots not in (3, 4):
            raise ConfigError(f"slots must be 3 or 4; got {self.slots}")
        if self.poll_interval_ms <= 0:
            raise ConfigError(
                f"poll_interval_ms must be positive; got {self.poll_interval_ms}"
            )
        if self.poll_interval_ms > self.tick_ms:
            logger.warning(
                "poll_interval_ms=%s exceeds tick_ms=%s, timed jobs may skip "
                "their firing tick",
                self.poll_interval_ms,
                self.tick_ms,
            )
        if self.min_sleep_ms <= 0:
            raise ConfigError(f"min_sleep_ms must be positive; got {self.min_sleep_ms}")
        if self.safety_margin_ms < 0:
            raise ConfigError(
                f"safety_margin_ms must be >= 0; got {self.safety_margin_ms}"
            )
        if self.jitter_slack_ticks < 0:
            raise ConfigError(
                f"jitter_slack_ticks must be >= 0; got {self.jitter_slack_ticks}"
            )
        if self.jitter_slack_ticks * self.tick_ms >= self.time_budget_ms:
            raise ConfigError(
                f"jitter_slack_ticks * tick_ms must stay below time_budget_ms "
                f"({self.time_budget_ms}); got {self.jitter_slack_ticks}"
            )

    @property
    def period_ms(self) -> int:
        return self.slots * self.time_budget_ms


@dataclass
class LoopConfig:
    """Control loop behaviour."""

    max_iterations: int | None = None  # None runs until stopped
    target_id: str | None = None  # None follows the shared target selection
    mode: str = "timed"  # "timed" batches or "continuous" per-tick firing

    def __post_init__(self):
        if self.mode not in ("timed", "continuous"):
            raise ConfigError(f"mode must be 'timed' or 'continuous'; got {self.mode!r}")
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ConfigError(
                f"max_iterations must be >= 1 or None; got {self.max_iterations}"
            )


@dataclass
class FarmingConfig:
    """Complete configuration of a control loop."""

    thresholds: FarmingThresholds = field(default_factory=FarmingThresholds)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FarmingConfig":
        """Build a config from nested dicts; unknown keys are rejected."""
        sections = {
            "thresholds": FarmingThresholds,
            "planner": PlannerConfig,
            "timing": TimingConfig,
            "loop": LoopConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigError(f"Unknown config sections: {', '.join(sorted(unknown))}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = data.get(name) or {}
            if not isinstance(values, dict):
                raise ConfigError(f"Section '{name}' must be a mapping")
            allowed = {f.name for f in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise ConfigError(
                    f"Unknown keys in '{name}': {', '.join(sorted(bad))}"
                )
            try:
                kwargs[name] = section_cls(**values)
            except TypeError as exc:
                raise ConfigError(f"Invalid '{name}' section: {exc}") from exc
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(path: str | Path) -> FarmingConfig:
    """Load a FarmingConfig from a JSON file."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    config = FarmingConfig.from_dict(data)
    logger.debug("Loaded config from %s", path)
    return config


def save_config(config: FarmingConfig, path: str | Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
