"""Stats aggregation: one read-mostly view over every progression component."""

from __future__ import annotations

from datetime import datetime, tzinfo

from progression.exceptions import UserNotFoundError

from progression.gamification.achievement_tracker import AchievementTracker, AchievementView
from progression.gamification.activity_log import ActivityLog
from progression.gamification.challenge_tracker import ChallengeTracker, ChallengeView
from progression.gamification.levels import compute_level
from progression.gamification.points_ledger import PointsLedger
from progression.gamification.rank_service import calculate_rank
from progression.gamification.schemas import (
    AchievementResponse,
    ActivityResponse,
    BadgeResponse,
    ChallengeResponse,
    ProgressionStatsResponse,
)
from progression.gamification.streak_service import calculate_streak
from progression.repositories.base import ActivityEntry, EarnedBadge, Repositories, UserAccount

MONTHLY_GOAL = 5000


def _achievement_response(view: AchievementView) -> AchievementResponse:
    d = view.definition
    return AchievementResponse(
        id=d.id,
        title=d.title,
        description=d.description,
        icon=d.icon,
        points=d.points,
        rarity=d.rarity.value,
        target=d.target,
        progress=view.progress,
        completed=view.completed,
        claimed=view.claimed,
        completed_at=view.completed_at,
    )


def _challenge_response(view: ChallengeView) -> ChallengeResponse:
    d = view.definition
    return ChallengeResponse(
        id=d.id,
        title=d.title,
        description=d.description,
        type=d.type.value,
        category=d.category,
        points=d.points,
        target=d.target,
        progress=view.progress,
        completed=view.completed,
        cycle=view.cycle,
        deadline=view.deadline,
    )


def _badge_response(badge: EarnedBadge) -> BadgeResponse:
    return BadgeResponse(
        id=badge.id,
        name=badge.name,
        rarity=badge.rarity,
        description=badge.description,
        icon=badge.icon,
        color=badge.color,
        earned_at=badge.earned_at,
    )


def _activity_response(entry: ActivityEntry) -> ActivityResponse:
    return ActivityResponse(
        id=entry.id,
        type=entry.type,
        description=entry.description,
        points=entry.points,
        timestamp=entry.timestamp,
        metadata=entry.metadata,
    )


class StatsAggregator:
    """Composes ledger, trackers, log, streak and rank into ProgressionStatsResponse.

    The only writes are lazy initialization: the profile and its seeded rows
    on first access, and the next challenge period after a deadline passes.
    """

    def __init__(
        self,
        repos: Repositories,
        ledger: PointsLedger,
        log: ActivityLog,
        achievements: AchievementTracker,
        challenges: ChallengeTracker,
        tz: tzinfo,
    ) -> None:
        self.repos = repos
        self.ledger = ledger
        self.log = log
        self.achievements = achievements
        self.challenges = challenges
        self.tz = tz

    async def initialize(self, user: UserAccount, role: str, now: datetime) -> None:
        """Create the profile and seed progress rows if this is the user's first access.

        The profile's rank scope always comes from the directory, never from the reader.
        """
        if await self.ledger.ensure_profile(user.id, user.school_id, now):
            await self.achievements.seed(user.id, role)
        await self.challenges.ensure_active(user.id, role, now)

    async def get_stats(
        self, user_id: int, role: str, scope_id: int | None, now: datetime
    ) -> ProgressionStatsResponse:
        """``scope_id`` only filters the rank; pass None to rank across all users."""
        user = await self.repos.users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        await self.initialize(user, role, now)
        await self.repos.commit()

        profile = await self.repos.profiles.get(user_id)
        total = profile.total_points if profile else 0
        level = compute_level(total)

        achievements = await self.achievements.progress_for(user_id, role)
        challenges = await self.challenges.active_for(user_id, role, now)
        badges = await self.repos.badges.list_for_user(user_id)
        recent = await self.log.recent(user_id)

        return ProgressionStatsResponse(
            user_id=user_id,
            total_points=total,
            level=level["level"],
            level_progress=level["level_progress"],
            points_to_next_level=level["points_to_next_level"],
            rank=await calculate_rank(self.repos.profiles, user_id, scope_id),
            streak=await calculate_streak(self.repos.activity, user_id, now, self.tz),
            weekly_progress=await self.log.weekly_progress(user_id, now, self.tz),
            monthly_goal=MONTHLY_GOAL,
            last_activity=profile.last_activity if profile else None,
            achievements=[_achievement_response(v) for v in achievements],
            active_challenges=[_challenge_response(v) for v in challenges],
            badges=[_badge_response(b) for b in badges],
            recent_activities=[_activity_response(e) for e in recent],
        )
