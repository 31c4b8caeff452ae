"""Static progression catalog: task points, achievements, challenges and routing.

Everything here is code-level configuration. The engine only ever sees it
through an immutable :class:`Catalog`, so tests can inject a smaller one.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any

DEFAULT_TASK_POINTS = 10

ROLE_SCHOOL = "school"  # school administrators
ROLE_ECA = "eca"  # extra-curricular coordinators


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class ChallengeType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


CHALLENGE_DURATIONS: dict[ChallengeType, timedelta] = {
    ChallengeType.DAILY: timedelta(days=1),
    ChallengeType.WEEKLY: timedelta(days=7),
    ChallengeType.MONTHLY: timedelta(days=30),
}


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    title: str
    description: str
    points: int
    target: int
    rarity: Rarity
    icon: str = "award"


@dataclass(frozen=True)
class ChallengeDefinition:
    id: str
    title: str
    description: str
    type: ChallengeType
    target: int
    points: int
    category: str

    @property
    def duration(self) -> timedelta:
        return CHALLENGE_DURATIONS[self.type]


# ---------------------------------------------------------------------------
# Task points
# ---------------------------------------------------------------------------

TASK_POINTS: dict[str, int] = {
    "login": 10,
    "daily_login": 10,
    "profile_update": 20,
    "document_upload": 15,
    "document_download": 5,
    "event_participation": 25,
    "event_attend": 25,
    "event_register": 15,
    "iso_submission": 30,
    "club_join": 20,
    "club_register": 30,
    "training_completion": 50,
    "message_sent": 5,
    "message_send": 5,
    "recognition_given": 15,
    "recognition_give": 15,
    "student_add": 25,
    "student_edit": 10,
}

# Description templates; "{name}" is filled from the metadata key given alongside.
TASK_DESCRIPTIONS: dict[str, tuple[str, str | None, str]] = {
    "login": ("Logged into the system", None, ""),
    "daily_login": ("Daily login completed", None, ""),
    "profile_update": ("Updated profile information", None, ""),
    "document_upload": ("Uploaded document: {name}", "documentName", "Unknown"),
    "document_download": ("Downloaded document: {name}", "documentName", "Unknown"),
    "event_participation": ("Participated in event: {name}", "eventName", "Unknown"),
    "event_attend": ("Attended event: {name}", "eventName", "Unknown"),
    "event_register": ("Registered for event: {name}", "eventName", "Unknown"),
    "iso_submission": ("Submitted ISO clause: {name}", "clauseNumber", "Unknown"),
    "club_join": ("Joined club: {name}", "clubName", "Unknown"),
    "club_register": ("Registered school for club: {name}", "clubName", "Unknown"),
    "training_completion": ("Completed training: {name}", "trainingName", "Unknown"),
    "message_sent": ("Sent a message", None, ""),
    "message_send": ("Sent a message", None, ""),
    "recognition_given": ("Gave recognition to {name}", "recipientName", "someone"),
    "recognition_give": ("Gave recognition to {name}", "recipientName", "someone"),
    "student_add": ("Added a new student", None, ""),
    "student_edit": ("Updated student information", None, ""),
}

# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------

COMMON_ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        "first_login", "Welcome Aboard", "Complete your first login",
        points=50, target=1, rarity=Rarity.COMMON, icon="user-check",
    ),
    AchievementDefinition(
        "profile_complete", "Profile Master", "Complete your profile information",
        points=100, target=1, rarity=Rarity.COMMON, icon="user",
    ),
)

ROLE_ACHIEVEMENTS: dict[str, tuple[AchievementDefinition, ...]] = {
    ROLE_SCHOOL: (
        AchievementDefinition(
            "student_manager", "Student Manager", "Add or edit 10 students",
            points=200, target=10, rarity=Rarity.RARE, icon="users",
        ),
        AchievementDefinition(
            "iso_compliance", "ISO Champion", "Complete 10 ISO submissions",
            points=500, target=10, rarity=Rarity.EPIC, icon="award",
        ),
        AchievementDefinition(
            "resource_downloader", "Resource Collector", "Download 20 documents",
            points=150, target=20, rarity=Rarity.COMMON, icon="download",
        ),
        AchievementDefinition(
            "event_participant", "Event Enthusiast", "Attend 5 school events",
            points=250, target=5, rarity=Rarity.RARE, icon="calendar",
        ),
    ),
    ROLE_ECA: (
        AchievementDefinition(
            "club_joiner", "Club Enthusiast", "Join 3 different clubs",
            points=200, target=3, rarity=Rarity.RARE, icon="trophy",
        ),
        AchievementDefinition(
            "event_attendee", "Event Regular", "Attend 10 events",
            points=300, target=10, rarity=Rarity.RARE, icon="calendar",
        ),
        AchievementDefinition(
            "recognition_giver", "Recognition Master", "Give recognition to 20 students",
            points=400, target=20, rarity=Rarity.EPIC, icon="award",
        ),
        AchievementDefinition(
            "resource_user", "Resource Expert", "Download 15 resources",
            points=100, target=15, rarity=Rarity.COMMON, icon="download",
        ),
    ),
}

ACHIEVEMENT_ROUTES: dict[str, tuple[str, ...]] = {
    "login": ("first_login",),
    "daily_login": ("first_login",),
    "profile_update": ("profile_complete",),
    "student_add": ("student_manager",),
    "student_edit": ("student_manager",),
    "document_download": ("resource_downloader", "resource_user"),
    "event_attend": ("event_participant", "event_attendee"),
    "iso_submission": ("iso_compliance",),
    "club_join": ("club_joiner",),
    "recognition_give": ("recognition_giver",),
}

# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------

COMMON_CHALLENGES: tuple[ChallengeDefinition, ...] = (
    ChallengeDefinition(
        "daily_login", "Daily Dedication", "Login every day this week",
        type=ChallengeType.WEEKLY, target=7, points=100, category="engagement",
    ),
)

ROLE_CHALLENGES: dict[str, tuple[ChallengeDefinition, ...]] = {
    ROLE_SCHOOL: (
        ChallengeDefinition(
            "weekly_downloads", "Resource Seeker", "Download 5 documents this week",
            type=ChallengeType.WEEKLY, target=5, points=75, category="learning",
        ),
        ChallengeDefinition(
            "monthly_iso", "ISO Progress", "Complete 3 ISO submissions this month",
            type=ChallengeType.MONTHLY, target=3, points=300, category="compliance",
        ),
    ),
    ROLE_ECA: (
        ChallengeDefinition(
            "weekly_participation", "Active Participant", "Attend 2 events this week",
            type=ChallengeType.WEEKLY, target=2, points=150, category="participation",
        ),
        ChallengeDefinition(
            "monthly_recognition", "Recognition Champion",
            "Give recognition to 10 students this month",
            type=ChallengeType.MONTHLY, target=10, points=200, category="recognition",
        ),
    ),
}

CHALLENGE_ROUTES: dict[str, tuple[str, ...]] = {
    "daily_login": ("daily_login",),
    "document_download": ("weekly_downloads",),
    "event_attend": ("weekly_participation",),
    "iso_submission": ("monthly_iso",),
    "recognition_give": ("monthly_recognition",),
}


@dataclass(frozen=True)
class Catalog:
    """Immutable, role-keyed view over the progression configuration."""

    task_points: Mapping[str, int]
    common_achievements: tuple[AchievementDefinition, ...]
    role_achievements: Mapping[str, tuple[AchievementDefinition, ...]]
    achievement_routes: Mapping[str, tuple[str, ...]]
    common_challenges: tuple[ChallengeDefinition, ...]
    role_challenges: Mapping[str, tuple[ChallengeDefinition, ...]]
    challenge_routes: Mapping[str, tuple[str, ...]]
    task_descriptions: Mapping[str, tuple[str, str | None, str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    default_task_points: int = DEFAULT_TASK_POINTS

    def points_for(self, task_type: str) -> int:
        """Points for a task; unknown task types still earn the baseline."""
        return self.task_points.get(task_type, self.default_task_points)

    def describe_task(self, task_type: str, metadata: dict[str, Any] | None = None) -> str:
        template = self.task_descriptions.get(task_type)
        if template is None:
            return f"Completed task: {task_type}"
        text, key, fallback = template
        if key is None:
            return text
        return text.format(name=(metadata or {}).get(key) or fallback)

    def knows_role(self, role: str) -> bool:
        return role in self.role_achievements or role in self.role_challenges

    def achievements_for(self, role: str) -> tuple[AchievementDefinition, ...]:
        return self.common_achievements + self.role_achievements.get(role, ())

    def challenges_for(self, role: str) -> tuple[ChallengeDefinition, ...]:
        return self.common_challenges + self.role_challenges.get(role, ())

    def achievements_for_task(self, task_type: str, role: str) -> list[AchievementDefinition]:
        """Routed achievements that apply to the role, in routing-table order."""
        applicable = {a.id: a for a in self.achievements_for(role)}
        return [
            applicable[aid]
            for aid in self.achievement_routes.get(task_type, ())
            if aid in applicable
        ]

    def challenges_for_task(self, task_type: str, role: str) -> list[ChallengeDefinition]:
        """Routed challenges that apply to the role, in routing-table order."""
        applicable = {c.id: c for c in self.challenges_for(role)}
        return [
            applicable[cid]
            for cid in self.challenge_routes.get(task_type, ())
            if cid in applicable
        ]


def _freeze(table: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(table))


DEFAULT_CATALOG = Catalog(
    task_points=_freeze(TASK_POINTS),
    common_achievements=COMMON_ACHIEVEMENTS,
    role_achievements=_freeze(ROLE_ACHIEVEMENTS),
    achievement_routes=_freeze(ACHIEVEMENT_ROUTES),
    common_challenges=COMMON_CHALLENGES,
    role_challenges=_freeze(ROLE_CHALLENGES),
    challenge_routes=_freeze(CHALLENGE_ROUTES),
    task_descriptions=_freeze(TASK_DESCRIPTIONS),
)


def get_catalog() -> Catalog:
    """Return the process-wide catalog (FastAPI dependency)."""
    return DEFAULT_CATALOG
