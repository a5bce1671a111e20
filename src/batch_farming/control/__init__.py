"""Coordination, dispatch and diagnostics for control loops.

`ControlLoop` lives in `batch_farming.control.loop`.
"""

from batch_farming.control.coordination import CoordinationCell, claim_tick
from batch_farming.control.diagnostics import (
    CycleReport,
    DiagnosticsRecorder,
    LoggingDiagnostics,
)
from batch_farming.control.executor import DispatchRecord, Executor, dispatched_units

__all__ = [
    "CoordinationCell",
    "claim_tick",
    "CycleReport",
    "DiagnosticsRecorder",
    "LoggingDiagnostics",
    "DispatchRecord",
    "Executor",
    "dispatched_units",
]
