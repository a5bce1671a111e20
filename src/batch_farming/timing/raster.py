"""Conversion of durations and timestamps onto the shared tick raster."""

import math

# Shared polling granularity in milliseconds
TICK_MS: int = 200


def raster(duration: float, tick: int = TICK_MS) -> int:
    """Round a duration up to the next tick boundary.

    The result is never smaller than the input and exceeds it by less than
    one tick. Duration oracles may jitter by a tick between calls, so two
    rasterized readings of the same operation can differ by exactly `tick`.

    Args:
        duration: Duration (or timestamp) in milliseconds, non-negative.
        tick: Tick width in milliseconds.

    Returns:
        The smallest multiple of `tick` that is >= `duration`.
    """
    if tick <= 0:
        raise ValueError(f"Tick width must be positive; got {tick}.")
    if duration < 0:
        raise ValueError(f"Duration must be non-negative; got {duration}.")
    return int(math.ceil(duration / tick)) * tick


def floor_raster(timestamp: float, tick: int = TICK_MS) -> int:
    """Largest tick boundary not after `timestamp`."""
    if tick <= 0:
        raise ValueError(f"Tick width must be positive; got {tick}.")
    return int(math.floor(timestamp / tick)) * tick


def ticks(duration: float, tick: int = TICK_MS) -> int:
    """Number of whole ticks covered by the rasterized duration."""
    return raster(duration, tick) // tick
