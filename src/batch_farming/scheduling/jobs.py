"""Timed jobs: wait until starting now lands on the target finish time.

A job never fires late. It fires on the first poll whose predicted finish
falls within `slack_ticks` ticks before the target, so a duration reading
that jumps by a tick between polls does not skip past the target. Once the
prediction passes the target the job aborts as a time miss; the next
control cycle replans from scratch.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from batch_farming.errors import ErrorKind, TimeMissError, WrongTypeError
from batch_farming.state.operations import OperationType
from batch_farming.timing.clock import Clock
from batch_farming.timing.raster import TICK_MS, raster

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    WAITING = "waiting"
    FIRED = "fired"
    ABORTED_TIME_MISS = "aborted_time_miss"
    ABORTED_WRONG_TYPE = "aborted_wrong_type"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self != JobState.WAITING


@dataclass
class TimedJob:
    """One dispatched job waiting for its firing instant.

    `operation` is validated on construction; an invalid type leaves the
    job in ABORTED_WRONG_TYPE without ever polling.
    """

    operation: Any
    target_id: str
    units: int
    target_finish: float
    run_id: int = 0
    worker_id: str | None = None
    tick: int = TICK_MS
    slack_ticks: int = 0

    state: JobState = field(default=JobState.WAITING, init=False)
    error: ErrorKind | None = field(default=None, init=False)
    fired_at: float | None = field(default=None, init=False)
    predicted_finish: int | None = field(default=None, init=False)

    def __post_init__(self):
        try:
            self.operation = OperationType.parse(self.operation)
        except WrongTypeError as exc:
            self.state = JobState.ABORTED_WRONG_TYPE
            self.error = ErrorKind.WRONG_TYPE
            logger.error("Job %s on %s aborted: %s", self.run_id, self.target_id, exc)

    def poll(self, now: float, duration: float) -> JobState:
        """Advance the state machine given the current operation duration."""
        if self.state.is_terminal:
            return self.state

        self.predicted_finish = raster(now + duration, self.tick)
        earliest = self.target_finish - self.slack_ticks * self.tick
        if earliest <= self.predicted_finish <= self.target_finish:
            self.state = JobState.FIRED
            self.fired_at = now
        elif self.predicted_finish > self.target_finish:
            miss = TimeMissError(self.predicted_finish, self.target_finish)
            self.state = JobState.ABORTED_TIME_MISS
            self.error = miss.kind
            logger.warning(
                "%s job %s on %s aborted: %s",
                self.operation.name,
                self.run_id,
                self.target_id,
                miss,
            )
        return self.state

    def cancel(self) -> None:
        if not self.state.is_terminal:
            self.state = JobState.CANCELLED


class DeadlineTask:
    """Runs a TimedJob against a clock, polling until it fires or aborts.

    `duration_fn` re-reads the operation duration on every poll, since
    target conditions drift while the job waits. `perform` executes the
    single remote operation once the job fires. Setting the cancellation
    event stops the task between polls.
    """

    def __init__(
        self,
        job: TimedJob,
        duration_fn: Callable[[], float],
        perform: Callable[[TimedJob], Any],
        clock: Clock | None = None,
        poll_interval_ms: float = 150,
        cancel_event: threading.Event | None = None,
    ):
        self.job = job
        self.duration_fn = duration_fn
        self.perform = perform
        self.clock = clock or Clock()
        self.poll_interval_ms = poll_interval_ms
        self.cancel_event = cancel_event or threading.Event()
        self.result: Any = None
        self._thread: threading.Thread | None = None

    def step(self, now: float | None = None) -> JobState:
        """Poll once, performing the operation if the job fires.

        `now` defaults to the clock; event-driven callers pass the event time.
        """
        if now is None:
            now = self.clock.now_ms()
        state = self.job.poll(now, self.duration_fn())
        if state == JobState.FIRED:
            self.result = self.perform(self.job)
        return state

    def run(self) -> JobState:
        while not self.job.state.is_terminal:
            if self.cancel_event.is_set():
                self.job.cancel()
                break
            if self.step().is_terminal:
                break
            if self.clock.wait(self.poll_interval_ms, self.cancel_event):
                self.job.cancel()
                break
        return self.job.state

    def start(self) -> threading.Thread:
        """Run on a daemon thread and return it."""
        self._thread = threading.Thread(
            target=self.run,
            name=f"job-{self.job.operation}-{self.job.run_id}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def cancel(self) -> None:
        self.cancel_event.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
