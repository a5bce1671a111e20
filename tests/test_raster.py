"""Tests for the tick raster and clocks."""

import threading

import numpy as np
import pytest

from batch_farming.timing.clock import Clock, FakeClock
from batch_farming.timing.raster import TICK_MS, floor_raster, raster, ticks


class TestRaster:
    """Tests for raster()."""

    def test_default_tick(self):
        assert TICK_MS == 200

    def test_exact_boundaries_unchanged(self):
        assert raster(0) == 0
        assert raster(200) == 200
        assert raster(4000) == 4000

    def test_rounds_up(self):
        assert raster(1) == 200
        assert raster(201) == 400
        assert raster(4416) == 4600

    def test_bounds_hold_for_random_durations(self):
        rng = np.random.default_rng(7)
        for t in rng.uniform(0, 1e6, size=500):
            r = raster(float(t))
            assert r >= t
            assert r - t < TICK_MS
            assert r % TICK_MS == 0

    def test_custom_tick(self):
        assert raster(250, tick=100) == 300
        assert raster(250, tick=50) == 250

    def test_negative_duration_rejected(self):
        with pytest.raises(ValueError):
            raster(-1)

    def test_non_positive_tick_rejected(self):
        with pytest.raises(ValueError):
            raster(100, tick=0)
        with pytest.raises(ValueError):
            floor_raster(100, tick=-200)


class TestRasterHelpers:
    """Tests for floor_raster() and ticks()."""

    def test_floor_raster(self):
        assert floor_raster(0) == 0
        assert floor_raster(399) == 200
        assert floor_raster(400) == 400

    def test_ticks(self):
        assert ticks(0) == 0
        assert ticks(200) == 1
        assert ticks(401) == 3


class TestFakeClock:
    """Tests for the manually advanced clock."""

    def test_starts_at_given_time(self):
        assert FakeClock(1500).now_ms() == 1500

    def test_wait_advances_time(self):
        clock = FakeClock()
        cancelled = clock.wait(350)
        assert not cancelled
        assert clock.now_ms() == 350

    def test_listeners_see_every_advance(self):
        clock = FakeClock()
        seen = []
        clock.add_listener(seen.append)
        clock.advance(100)
        clock.wait(50)
        assert seen == [100, 150]

    def test_cannot_go_backwards(self):
        with pytest.raises(ValueError):
            FakeClock().advance(-1)

    def test_wait_reports_cancellation(self):
        clock = FakeClock()
        event = threading.Event()
        event.set()
        assert clock.wait(1000, event) is True
        assert clock.now_ms() == 0


class TestClock:
    """Tests for the monotonic wall clock."""

    def test_monotonic(self):
        clock = Clock()
        first = clock.now_ms()
        assert clock.now_ms() >= first

    def test_wait_returns_early_when_cancelled(self):
        event = threading.Event()
        event.set()
        assert Clock().wait(10_000, event) is True
