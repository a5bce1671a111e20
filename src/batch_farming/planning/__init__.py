"""Batch sizing: analyzer oracles, Batch record and planning strategies."""

from batch_farming.planning.analyzer import Analyzer, FormulaAnalyzer
from batch_farming.planning.batch import Batch, Strategy
from batch_farming.planning.planner import (
    BatchPlanner,
    plan_farming_batch,
    plan_preparation_batch,
)

__all__ = [
    "Analyzer",
    "FormulaAnalyzer",
    "Batch",
    "Strategy",
    "BatchPlanner",
    "plan_farming_batch",
    "plan_preparation_batch",
]
