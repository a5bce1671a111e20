"""Ranking of candidate targets by expected extraction rate."""

import logging
from typing import Iterable

from batch_farming.control.coordination import CoordinationCell
from batch_farming.state.operations import OperationType
from batch_farming.state.target import TargetSnapshot

logger = logging.getLogger(__name__)


def score_target(target: TargetSnapshot) -> float:
    """Expected value per millisecond of a full cycle.

    Value capacity divided by the counter-pressure duration (the slowest
    operation of a batch), weighted by extract success chance.
    """
    duration = target.duration(OperationType.COUNTER)
    if duration <= 0 or target.success_chance <= 0:
        return 0.0
    return target.max_value / duration * target.success_chance


def rank_targets(targets: Iterable[TargetSnapshot]) -> list[tuple[str, float]]:
    """Targets sorted by score, best first. Zero-score targets are dropped."""
    scored = [(t.target_id, score_target(t)) for t in targets]
    scored = [(name, score) for name, score in scored if score > 0]
    return sorted(scored, key=lambda x: x[1], reverse=True)


class TargetSelector:
    """Publishes the most profitable target into a shared selection cell."""

    def __init__(self, cell: CoordinationCell):
        self.cell = cell

    def select(self, targets: Iterable[TargetSnapshot]) -> str | None:
        ranking = rank_targets(targets)
        if not ranking:
            logger.warning("No viable target among candidates")
            return None
        best, score = ranking[0]
        previous = self.cell.peek()
        if previous != best:
            logger.info("Target selection %s -> %s (score %.3f)", previous, best, score)
        self.cell.set(best)
        return best

    def current(self) -> str | None:
        return self.cell.peek()
