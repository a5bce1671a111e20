"""Batch Farming Scheduler.

Plans, times and packs extract / replenish / counter-pressure batches
against remote targets on a capacity-constrained pool of workers.
"""

__version__ = "0.1.0"
