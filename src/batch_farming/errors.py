"""Error taxonomy for planning, timing and allocation."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced in job states and cycle reports."""

    WRONG_TYPE = "WrongType"
    TIME_MISS = "TimeMiss"
    INSUFFICIENT_CAPACITY = "InsufficientCapacity"
    UNDEFINED_YIELD = "UndefinedYield"


class BatchFarmingError(Exception):
    """Base class for all package errors."""

    kind: ErrorKind | None = None


class WrongTypeError(BatchFarmingError, ValueError):
    """Operation type is not one of extract, replenish, counter-pressure."""

    kind = ErrorKind.WRONG_TYPE


class TimeMissError(BatchFarmingError):
    """Predicted finish overshot the target finish time."""

    kind = ErrorKind.TIME_MISS

    def __init__(self, predicted_finish: float, target_finish: float):
        self.predicted_finish = predicted_finish
        self.target_finish = target_finish
        super().__init__(
            f"predicted finish {predicted_finish:.0f}ms is past target {target_finish:.0f}ms"
        )


class InsufficientCapacityError(BatchFarmingError):
    """Worker pool cannot hold the full batch."""

    kind = ErrorKind.INSUFFICIENT_CAPACITY

    def __init__(self, required: float, available: float):
        self.required = required
        self.available = available
        super().__init__(
            f"batch needs {required:.2f} capacity, only {available:.2f} free"
        )

    @property
    def shortfall(self) -> float:
        return max(0.0, self.required - self.available)


class UndefinedYieldError(BatchFarmingError, ArithmeticError):
    """An analyzer formula is undefined for the current target conditions."""

    kind = ErrorKind.UNDEFINED_YIELD


class ConfigError(BatchFarmingError, ValueError):
    """Invalid configuration value."""
