"""Competition rank: one plus the number of strictly higher totals in scope."""

from __future__ import annotations

from progression.repositories.base import ProfileRepo


async def calculate_rank(profiles: ProfileRepo, user_id: int, scope_id: int | None = None) -> int:
    """Rank a user among all profiles, or only those sharing ``scope_id``.

    Equal totals share a rank, so sequences skip after ties (1, 1, 3).
    A user without a profile counts as zero points.
    """
    profile = await profiles.get(user_id)
    total = profile.total_points if profile else 0
    above = await profiles.count_above(total, scope_id)
    return above + 1
