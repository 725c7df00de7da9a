"""
civica.engine.gamification — Points & Level Calculation
=========================================================

Pure calculation, no DB I/O.  The transactional wrapper lives in
:mod:`civica.services.gamification_service`.

Rules:
  * points never go below zero;
  * reaching the current tier's threshold promotes exactly one tier and
    resets points to zero;
  * diamond is terminal, so diamond points keep accumulating.

Only one promotion is applied per call, even when a large delta would
clear several thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass

from civica.constants import NEXT_LEVEL, POINTS_PER_UPVOTE, threshold
from civica.database.models import Level

__all__ = ["PointsResult", "apply_delta", "points_for_upvotes", "progress"]


@dataclass(frozen=True, slots=True)
class PointsResult:
    """Outcome of applying a point delta to ``(points, level)``."""

    points: float
    level: Level
    leveled_up: bool = False
    old_level: Level | None = None


def apply_delta(points: float, level: Level | str, delta: float) -> PointsResult:
    """Apply *delta* to *points* at *level* and resolve promotion."""
    level = Level(level)
    new_points = max(0, (points or 0) + delta)

    successor = NEXT_LEVEL[level]
    if successor is not None and new_points >= threshold(level):
        return PointsResult(points=0, level=successor, leveled_up=True, old_level=level)

    return PointsResult(points=new_points, level=level)


def points_for_upvotes(count: int) -> float:
    """Points earned by *count* upvotes (negative counts remove points)."""
    return round(count * POINTS_PER_UPVOTE, 2)


def progress(points: float, level: Level | str) -> float:
    """Fraction of the way to the next tier, in ``[0, 1]``."""
    target = threshold(level)
    return min(max(points / target, 0.0), 1.0)
