"""Progression API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from progression.dependencies import get_progression_engine
from progression.gamification.catalog import Catalog, get_catalog
from progression.gamification.engine import ProgressionEngine
from progression.gamification.levels import compute_level
from progression.gamification.schemas import (
    AchievementDefinitionResponse,
    CatalogResponse,
    ChallengeDefinitionResponse,
    LevelResponse,
    ProgressionStatsResponse,
    TaskCompletionRequest,
    TaskCompletionResponse,
)

router = APIRouter(prefix="/api/v1/progression", tags=["Progression"])


@router.post("/users/{user_id}/tasks/complete", response_model=TaskCompletionResponse)
async def complete_task(
    body: TaskCompletionRequest,
    user_id: int = Path(ge=1),
    engine: ProgressionEngine = Depends(get_progression_engine),
):
    """Record a completed task and return the user's new points and level."""
    return await engine.complete_task(user_id, body.task_type, body.metadata)


@router.get("/users/{user_id}/stats", response_model=ProgressionStatsResponse)
async def get_stats(
    user_id: int = Path(ge=1),
    role: str = Query(min_length=1),
    scope_id: int | None = Query(default=None),
    engine: ProgressionEngine = Depends(get_progression_engine),
):
    """Full progression view for one user under the given role's catalog."""
    return await engine.get_stats(user_id, role, scope_id)


@router.get("/catalog/{role}", response_model=CatalogResponse)
async def get_role_catalog(role: str, catalog: Catalog = Depends(get_catalog)):
    """Achievement and challenge definitions available to a role."""
    if not catalog.knows_role(role):
        raise HTTPException(status_code=404, detail="Role not found")

    return CatalogResponse(
        role=role,
        achievements=[
            AchievementDefinitionResponse(
                id=a.id,
                title=a.title,
                description=a.description,
                icon=a.icon,
                points=a.points,
                rarity=a.rarity.value,
                target=a.target,
            )
            for a in catalog.achievements_for(role)
        ],
        challenges=[
            ChallengeDefinitionResponse(
                id=c.id,
                title=c.title,
                description=c.description,
                type=c.type.value,
                category=c.category,
                points=c.points,
                target=c.target,
                duration_days=c.duration.days,
            )
            for c in catalog.challenges_for(role)
        ],
    )


@router.get("/levels/{total_points}", response_model=LevelResponse)
async def get_level(total_points: int = Path(ge=0)):
    """Level values derived from a point total."""
    return LevelResponse(total_points=total_points, **compute_level(total_points))
