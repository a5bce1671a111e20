"""Single-slot shared cells injected into cooperating control loops."""

import threading
from typing import Any


class CoordinationCell:
    """A named last-writer-wins slot with compare-and-swap.

    Reads and writes are serialized by a lock, but callers use it in an
    advisory way: a duplicate dispatch after a lost race is tolerated.
    """

    def __init__(self, name: str, initial: Any = None):
        self.name = name
        self._value = initial
        self._lock = threading.Lock()
        self._version = 0

    def peek(self) -> Any:
        """Current value, or None when empty."""
        with self._lock:
            return self._value

    def set(self, value: Any) -> None:
        with self._lock:
            self._value = value
            self._version += 1

    def compare_and_set(self, expected: Any, value: Any) -> bool:
        """Store `value` only if the slot still holds `expected`."""
        with self._lock:
            if self._value != expected:
                return False
            self._value = value
            self._version += 1
            return True

    def clear(self) -> None:
        self.set(None)

    @property
    def version(self) -> int:
        """Number of successful writes so far."""
        with self._lock:
            return self._version

    def __repr__(self) -> str:
        return f"CoordinationCell(name={self.name!r}, value={self.peek()!r})"


def claim_tick(cell: CoordinationCell, tick_stamp: int) -> bool:
    """Claim a raster-aligned cycle timestamp for this loop.

    Returns False when another loop already claimed this tick (or a later
    one), in which case the caller skips dispatch.
    """
    last = cell.peek()
    if last is not None and last >= tick_stamp:
        return False
    return cell.compare_and_set(last, tick_stamp)
