"""Tests for the resource allocator."""

import numpy as np
import pytest

from batch_farming.allocation.allocator import ResourceAllocator
from batch_farming.errors import ErrorKind
from batch_farming.planning.batch import Batch
from batch_farming.state.operations import OPERATION_SPECS, OperationType
from batch_farming.state.worker import WorkerPool, WorkerSnapshot


@pytest.fixture
def allocator():
    return ResourceAllocator()


class TestAllocate:
    """Tests for ResourceAllocator.allocate()."""

    def test_packs_counter_first_largest_worker_first(self, allocator):
        batch = Batch("t1", extract=10, replenish=10, counter=10)
        pool = WorkerPool(
            [
                WorkerSnapshot("w2", total_capacity=20.0),
                WorkerSnapshot("w1", total_capacity=40.0),
            ]
        )
        allocation = allocator.allocate(batch, pool)

        assert allocation.error is None
        placed = [(a.worker_id, a.operation, a.units) for a in allocation.assignments]
        assert placed == [
            ("w1", OperationType.COUNTER, 10),
            ("w1", OperationType.REPLENISH, 10),
            ("w1", OperationType.EXTRACT, 2),
            ("w2", OperationType.EXTRACT, 8),
        ]
        assert allocation.dispatched_counts == batch.counts
        assert allocation.total_cost == pytest.approx(batch.total_cost())

    def test_insufficient_capacity_dispatches_nothing(self, allocator):
        batch = Batch("t1", extract=100, replenish=10, counter=10)
        pool = WorkerPool([WorkerSnapshot("w1", total_capacity=64.0)])
        allocation = allocator.allocate(batch, pool)

        assert allocation.is_empty
        assert allocation.error == ErrorKind.INSUFFICIENT_CAPACITY
        assert allocation.shortfall == pytest.approx(batch.total_cost() - 64.0)
        assert all(allocation.dispatched(op) == 0 for op in OperationType)
        assert allocation.unplaced == batch.counts

    def test_fragmented_capacity_dispatches_nothing(self, allocator):
        # 3.48 free in total, but no single worker holds one 1.75 unit
        batch = Batch("t1", counter=1)
        pool = WorkerPool(
            [
                WorkerSnapshot("w1", total_capacity=1.74),
                WorkerSnapshot("w2", total_capacity=1.74),
            ]
        )
        allocation = allocator.allocate(batch, pool)
        assert allocation.is_empty
        assert allocation.error == ErrorKind.INSUFFICIENT_CAPACITY
        assert allocation.unplaced[OperationType.COUNTER] == 1

    def test_empty_batch(self, allocator):
        allocation = allocator.allocate(Batch("t1"), WorkerPool([WorkerSnapshot("w", 8.0)]))
        assert allocation.is_empty
        assert allocation.error is None
        assert allocation.shortfall == 0.0

    def test_empty_pool(self, allocator):
        allocation = allocator.allocate(Batch("t1", counter=1), WorkerPool())
        assert allocation.is_empty
        assert allocation.error == ErrorKind.INSUFFICIENT_CAPACITY

    def test_committed_capacity_is_respected(self, allocator):
        pool = WorkerPool([WorkerSnapshot("w1", total_capacity=10.0, committed_capacity=8.0)])
        allocation = allocator.allocate(Batch("t1", counter=1), pool)
        assert allocation.used_by_worker() == {"w1": pytest.approx(1.75)}

    def test_bounds_hold_for_random_batches(self, allocator):
        rng = np.random.default_rng(11)
        for _ in range(300):
            workers = [
                WorkerSnapshot(
                    f"w{i}",
                    total_capacity=float(cap),
                    committed_capacity=float(cap) * float(rng.uniform(0, 0.9)),
                )
                for i, cap in enumerate(rng.uniform(2, 200, size=rng.integers(1, 6)))
            ]
            pool = WorkerPool(workers)
            batch = Batch(
                "t1",
                extract=int(rng.integers(0, 150)),
                replenish=int(rng.integers(0, 60)),
                counter=int(rng.integers(0, 60)),
            )
            allocation = allocator.allocate(batch, pool)

            for op in OperationType:
                assert allocation.dispatched(op) <= batch.count(op)
            for worker_id, used in allocation.used_by_worker().items():
                assert used <= pool.get(worker_id).free_capacity + 1e-9

            # All or nothing
            if allocation.is_empty:
                assert batch.is_empty or allocation.error == ErrorKind.INSUFFICIENT_CAPACITY
            else:
                assert allocation.dispatched_counts == batch.counts
            if batch.total_cost() > pool.free_capacity + 1e-9:
                assert allocation.is_empty


class TestPack:
    """Tests for the greedy packing step on its own."""

    def test_reports_remaining_units(self, allocator):
        pool = WorkerPool([WorkerSnapshot("w1", total_capacity=10.0)])
        assignments, remaining = allocator.pack(Batch("t1", extract=10, counter=2), pool)
        # Counter first (3.5), then floor(6.5 / 1.7) = 3 extract units
        assert [(a.operation, a.units) for a in assignments] == [
            (OperationType.COUNTER, 2),
            (OperationType.EXTRACT, 3),
        ]
        assert remaining[OperationType.EXTRACT] == 7

    def test_costs_use_operation_specs(self, allocator):
        pool = WorkerPool([WorkerSnapshot("w1", total_capacity=100.0)])
        assignments, _ = allocator.pack(Batch("t1", extract=4), pool)
        assert assignments[0].cost == pytest.approx(4 * OPERATION_SPECS[OperationType.EXTRACT].unit_cost)
