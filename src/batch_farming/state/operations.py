"""Operation types and their per-unit resource requirements."""

from dataclasses import dataclass
from enum import IntEnum

from batch_farming.errors import WrongTypeError


class OperationType(IntEnum):
    """Remote operations issued against a target.

    Values match the numeric type argument passed to timed job scripts.
    """

    EXTRACT = 1  # Removes value, raises pressure
    REPLENISH = 2  # Restores value, raises pressure
    COUNTER = 3  # Lowers pressure, value untouched

    @classmethod
    def parse(cls, value) -> "OperationType":
        """Coerce an int, name or OperationType, raising WrongTypeError."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper().replace("-", "_")]
            except KeyError:
                raise WrongTypeError(f"Unknown operation type {value!r}") from None
        if isinstance(value, bool):
            raise WrongTypeError(f"Unknown operation type {value!r}")
        try:
            return cls(value)
        except (ValueError, TypeError):
            raise WrongTypeError(f"Unknown operation type {value!r}") from None


# Allocation priority: counter-pressure first, extract last
ALLOCATION_ORDER: tuple[OperationType, ...] = (
    OperationType.COUNTER,
    OperationType.REPLENISH,
    OperationType.EXTRACT,
)


@dataclass(frozen=True)
class OperationSpec:
    """Resource requirements of one concurrency unit of an operation."""

    unit_cost: float  # Capacity consumed per concurrency unit
    script_kind: str  # Script handed to the job-launch interface


OPERATION_SPECS: dict[OperationType, OperationSpec] = {
    OperationType.EXTRACT: OperationSpec(unit_cost=1.70, script_kind="extract"),
    OperationType.REPLENISH: OperationSpec(unit_cost=1.75, script_kind="replenish"),
    OperationType.COUNTER: OperationSpec(unit_cost=1.75, script_kind="counter"),
}


def max_unit_cost(specs: dict[OperationType, OperationSpec] | None = None) -> float:
    """Largest per-unit cost, used to express capacity as generic units."""
    specs = specs or OPERATION_SPECS
    return max(spec.unit_cost for spec in specs.values())
