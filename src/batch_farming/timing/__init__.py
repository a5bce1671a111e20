"""Shared clock and tick raster."""

from batch_farming.timing.clock import Clock, FakeClock
from batch_farming.timing.raster import TICK_MS, floor_raster, raster, ticks

__all__ = ["Clock", "FakeClock", "TICK_MS", "raster", "floor_raster", "ticks"]
