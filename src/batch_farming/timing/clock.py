"""Clock abstraction so loops and jobs can run on simulated time."""

import threading
import time


class Clock:
    """Monotonic clock reporting milliseconds."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    def wait(self, duration_ms: float, cancel: threading.Event | None = None) -> bool:
        """Suspend for `duration_ms`; return True if `cancel` was set."""
        if cancel is None:
            if duration_ms > 0:
                time.sleep(duration_ms / 1000.0)
            return False
        return cancel.wait(max(duration_ms, 0) / 1000.0)


class FakeClock(Clock):
    """Manually advanced clock for tests and simulation.

    `wait` advances time instead of blocking and notifies registered
    listeners, so a simulated network progresses in lock step with the
    control loop.
    """

    def __init__(self, start_ms: float = 0.0):
        self._time = float(start_ms)
        self._listeners: list = []

    def now_ms(self) -> float:
        return self._time

    def advance(self, delta_ms: float) -> None:
        if delta_ms < 0:
            raise ValueError(f"Cannot move a clock backwards ({delta_ms}ms).")
        self._time += delta_ms
        for listener in self._listeners:
            listener(self._time)

    def wait(self, duration_ms: float, cancel: threading.Event | None = None) -> bool:
        if cancel is not None and cancel.is_set():
            return True
        if duration_ms > 0:
            self.advance(duration_ms)
        return cancel is not None and cancel.is_set()

    def add_listener(self, listener) -> None:
        """Call `listener(now_ms)` after every advance."""
        self._listeners.append(listener)
