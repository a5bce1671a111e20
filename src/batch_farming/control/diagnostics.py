"""Per-cycle summaries published by the control loop."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from batch_farming.errors import ErrorKind
from batch_farming.state.operations import OperationType

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Summary of one control-loop cycle."""

    cycle: int
    timestamp: float  # Cycle start in ms
    loop_name: str = "loop"
    target_id: str | None = None
    strategy: str | None = None
    value_ratio: float = 0.0
    pressure_delta: float = 0.0
    planned: dict[OperationType, int] = field(default_factory=dict)
    dispatched: dict[OperationType, int] = field(default_factory=dict)
    utilization: float = 0.0  # Percent of pool capacity committed after dispatch
    wait_ms: float = 0.0
    shortfall: float = 0.0
    run_id: int | None = None
    finish_times: dict[OperationType, int] | None = None
    skipped_reason: str | None = None
    error: ErrorKind | None = None
    failed_launches: int = 0

    @property
    def dispatched_total(self) -> int:
        return sum(self.dispatched.values())

    @property
    def planned_total(self) -> int:
        return sum(self.planned.values())

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["planned"] = {op.name.lower(): n for op, n in self.planned.items()}
        data["dispatched"] = {op.name.lower(): n for op, n in self.dispatched.items()}
        if self.finish_times is not None:
            data["finish_times"] = {
                op.name.lower(): t for op, t in self.finish_times.items()
            }
        data["error"] = self.error.value if self.error else None
        return data


def _line(name: str, value: Any) -> str:
    if isinstance(value, float):
        text = f"{value:21.2f}"
    else:
        text = f"{str(value):>21}"
    return f"| {name:<21} = {text} |"


def format_report(report: CycleReport) -> str:
    """Boxed multi-line view of a report, for debug logs and terminals."""
    rule = "+" + "-" * 48 + "+"
    lines = [
        rule,
        _line("Target", report.target_id or "-"),
        _line("Mode", report.strategy or "-"),
        _line("Value Ratio [%]", report.value_ratio * 100.0),
        _line("Pressure Delta", report.pressure_delta),
        rule,
    ]
    for op in OperationType:
        lines.append(
            _line(
                f"{op.name.title()} Units",
                f"{report.dispatched.get(op, 0)}/{report.planned.get(op, 0)}",
            )
        )
    lines += [
        rule,
        _line("Utilization [%]", report.utilization),
        _line("Shortfall", report.shortfall),
        _line("Wait [s]", report.wait_ms / 1000.0),
        rule,
    ]
    return "\n".join(lines)


class LoggingDiagnostics:
    """Writes one summary line per cycle to the package logger."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def publish(self, report: CycleReport) -> None:
        counts = "/".join(str(report.dispatched.get(op, 0)) for op in OperationType)
        message = (
            "[%s] cycle %d target=%s mode=%s value=%.1f%% dpressure=%.3f "
            "dispatched(e/r/c)=%s util=%.1f%% wait=%.0fms"
        )
        args = (
            report.loop_name,
            report.cycle,
            report.target_id,
            report.strategy,
            report.value_ratio * 100.0,
            report.pressure_delta,
            counts,
            report.utilization,
            report.wait_ms,
        )
        if report.error is not None or report.skipped_reason:
            self.log.warning(
                message + " skipped=%s shortfall=%.2f",
                *args,
                report.skipped_reason or report.error.value,
                report.shortfall,
            )
        else:
            self.log.info(message, *args)
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug("\n%s", format_report(report))


class DiagnosticsRecorder:
    """Keeps every published report in memory."""

    def __init__(self, max_reports: int | None = None):
        self.max_reports = max_reports
        self.reports: list[CycleReport] = []

    def publish(self, report: CycleReport) -> None:
        self.reports.append(report)
        if self.max_reports is not None and len(self.reports) > self.max_reports:
            self.reports = self.reports[-self.max_reports :]

    def __len__(self) -> int:
        return len(self.reports)

    @property
    def latest(self) -> CycleReport | None:
        return self.reports[-1] if self.reports else None

    def for_target(self, target_id: str) -> list[CycleReport]:
        return [r for r in self.reports if r.target_id == target_id]

    def clear(self) -> None:
        self.reports.clear()
