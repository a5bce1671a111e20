"""Dispatch of allocated batches through the job-launch interface."""

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from batch_farming.allocation.allocator import Allocation
from batch_farming.control.interfaces import JobLauncher
from batch_farming.state.operations import OPERATION_SPECS, OperationSpec, OperationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchRecord:
    """One launched (or failed) job."""

    operation: OperationType
    units: int
    target_id: str
    worker_id: str
    run_id: int
    finish_time: int | None = None
    handle: Any = None

    @property
    def launched(self) -> bool:
        return self.handle is not None and self.handle is not False


class Executor:
    """Launches every assignment of an allocation.

    All jobs of one batch share a run id; ids increase monotonically so
    concurrently running jobs of the same type against the same target stay
    distinguishable. Loops that target the same identifier can share one
    `run_ids` counter.
    """

    def __init__(
        self,
        launcher: JobLauncher,
        specs: dict[OperationType, OperationSpec] | None = None,
        run_ids: Iterator[int] | None = None,
    ):
        self.launcher = launcher
        self.specs = specs or OPERATION_SPECS
        self._run_ids = run_ids if run_ids is not None else itertools.count()
        self.launched_count = 0
        self.failed_count = 0

    def next_run_id(self) -> int:
        return next(self._run_ids)

    def dispatch(
        self,
        allocation: Allocation,
        finish_times: dict[OperationType, int] | None = None,
        operations: Iterable[OperationType] | None = None,
        run_id: int | None = None,
    ) -> list[DispatchRecord]:
        """Launch the allocation's assignments.

        Args:
            allocation: Packed batch.
            finish_times: Absolute finish per operation for timed jobs.
            operations: Restrict dispatch to these operation types.
            run_id: Reuse an id instead of drawing the next one.

        Returns:
            A record per assignment, including failed launches.
        """
        if allocation.is_empty:
            return []

        selected = set(operations) if operations is not None else set(OperationType)
        if run_id is None:
            run_id = self.next_run_id()
        target_id = allocation.batch.target_id
        records: list[DispatchRecord] = []

        for assignment in allocation.assignments:
            if assignment.operation not in selected or assignment.units <= 0:
                continue
            finish = finish_times.get(assignment.operation) if finish_times else None
            handle = self.launcher.launch(
                self.specs[assignment.operation].script_kind,
                assignment.worker_id,
                assignment.units,
                target_id,
                finish,
                run_id,
            )
            record = DispatchRecord(
                operation=assignment.operation,
                units=assignment.units,
                target_id=target_id,
                worker_id=assignment.worker_id,
                run_id=run_id,
                finish_time=finish,
                handle=handle,
            )
            if record.launched:
                self.launched_count += 1
            else:
                self.failed_count += 1
                logger.warning(
                    "Launch failed: %s x%d on %s against %s (run %d)",
                    assignment.operation.name,
                    assignment.units,
                    assignment.worker_id,
                    target_id,
                    run_id,
                )
            records.append(record)

        return records


def dispatched_units(records: Iterable[DispatchRecord]) -> dict[OperationType, int]:
    """Units actually launched per operation."""
    totals = {op: 0 for op in OperationType}
    for record in records:
        if record.launched:
            totals[record.operation] += record.units
    return totals
