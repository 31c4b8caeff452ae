"""Level computation.

Levels are a pure function of total points: every 1000 points is one level.
None of these values are ever stored.
"""

from __future__ import annotations

POINTS_PER_LEVEL = 1000


def compute_level(total_points: int) -> dict:
    """Compute level info from total points."""
    points_into_level = total_points % POINTS_PER_LEVEL
    return {
        "level": total_points // POINTS_PER_LEVEL + 1,
        "level_progress": points_into_level * 100 / POINTS_PER_LEVEL,
        "points_to_next_level": POINTS_PER_LEVEL - points_into_level,
    }


def crossed_level(old_total: int, new_total: int) -> bool:
    """True when moving from old_total to new_total reaches a new level."""
    return new_total // POINTS_PER_LEVEL > old_total // POINTS_PER_LEVEL
