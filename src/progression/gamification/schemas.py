"""Pydantic request/response models for progression endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# --- Task completion ---


class TaskCompletionRequest(BaseModel):
    task_type: str = Field(min_length=1, max_length=64)
    metadata: dict[str, Any] | None = None


class TaskCompletionResponse(BaseModel):
    points_earned: int
    total_points: int
    level: int
    level_progress: float
    points_to_next_level: int


# --- Stats ---


class AchievementResponse(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    points: int
    rarity: str
    target: int
    progress: int = 0
    completed: bool = False
    claimed: bool = False
    completed_at: datetime | None = None


class ChallengeResponse(BaseModel):
    id: str
    title: str
    description: str
    type: str
    category: str
    points: int
    target: int
    progress: int = 0
    completed: bool = False
    cycle: int = 1
    deadline: datetime


class BadgeResponse(BaseModel):
    id: str
    name: str
    rarity: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    earned_at: datetime | None = None


class ActivityResponse(BaseModel):
    id: int | None = None
    type: str
    description: str
    points: int
    timestamp: datetime
    metadata: dict[str, Any] = {}


class ProgressionStatsResponse(BaseModel):
    user_id: int
    total_points: int
    level: int
    level_progress: float
    points_to_next_level: int
    rank: int
    streak: int
    weekly_progress: int
    monthly_goal: int
    last_activity: datetime | None = None
    achievements: list[AchievementResponse]
    active_challenges: list[ChallengeResponse]
    badges: list[BadgeResponse]
    recent_activities: list[ActivityResponse]


# --- Catalog / levels ---


class AchievementDefinitionResponse(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    points: int
    rarity: str
    target: int


class ChallengeDefinitionResponse(BaseModel):
    id: str
    title: str
    description: str
    type: str
    category: str
    points: int
    target: int
    duration_days: int


class CatalogResponse(BaseModel):
    role: str
    achievements: list[AchievementDefinitionResponse]
    challenges: list[ChallengeDefinitionResponse]


class LevelResponse(BaseModel):
    total_points: int
    level: int
    level_progress: float
    points_to_next_level: int
