"""Packing of batches onto worker capacity."""

from batch_farming.allocation.allocator import Allocation, Assignment, ResourceAllocator

__all__ = ["ResourceAllocator", "Allocation", "Assignment"]
