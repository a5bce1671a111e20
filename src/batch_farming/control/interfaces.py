"""Boundaries to the external collaborators of the control loop."""

from typing import Any, Protocol

from batch_farming.state.target import TargetSnapshot
from batch_farming.state.worker import WorkerSnapshot


class JobLauncher(Protocol):
    """Starts a job script on a worker.

    Returns a handle on success and None on failure. A zero `unit_count`
    must be a harmless no-op.
    """

    def launch(
        self,
        script_kind: str,
        worker_id: str,
        unit_count: int,
        target_id: str,
        finish_time: float | None = None,
        run_id: int | None = None,
    ) -> Any: ...


class SnapshotSource(Protocol):
    """Point-in-time reads of target and worker state, without side effects."""

    def target_snapshot(self, target_id: str) -> TargetSnapshot: ...

    def worker_snapshot(self, worker_id: str) -> WorkerSnapshot: ...


class DiscoveryFeed(Protocol):
    """Identifiers of reachable targets and usable workers, refreshed each cycle."""

    def target_ids(self) -> list[str]: ...

    def worker_ids(self) -> list[str]: ...


class DiagnosticsSink(Protocol):
    """Passive consumer of per-cycle reports."""

    def publish(self, report: Any) -> None: ...
