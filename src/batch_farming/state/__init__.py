"""Typed snapshots of targets, workers and operations."""

from batch_farming.state.operations import (
    ALLOCATION_ORDER,
    OPERATION_SPECS,
    OperationSpec,
    OperationType,
    max_unit_cost,
)
from batch_farming.state.target import TargetSnapshot
from batch_farming.state.worker import WorkerPool, WorkerSnapshot

__all__ = [
    "OperationType",
    "OperationSpec",
    "OPERATION_SPECS",
    "ALLOCATION_ORDER",
    "max_unit_cost",
    "TargetSnapshot",
    "WorkerSnapshot",
    "WorkerPool",
]
