"""Skills router: catalogue listing and managing the skills on a profile."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import AIEvaluator, get_evaluator
from strive.auth.dependencies import get_current_user, require_self
from strive.database import get_session
from strive.db.models import User
from strive.jobs.service import refresh_recommendations
from strive.progression.sources import SKILL_ADDED_XP, XPSource
from strive.progression.streak_service import touch_streak
from strive.progression.xp_service import award_xp
from strive.redis_client import get_optional_redis
from strive.skills.service import (
    DuplicateSkillError,
    SkillNotFoundError,
    add_user_skill,
    list_skills,
    remove_user_skill,
    update_user_skill_level,
)
from strive.users.schemas import UserSkillResponse
from strive.users.service import get_user_skills

router = APIRouter(prefix="/api/v1/skills", tags=["Skills"])


class SkillResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    category: str


class AddSkillRequest(BaseModel):
    skill_id: int = Field(..., gt=0)
    level: Literal["beginner", "intermediate", "advanced"]


class UpdateSkillRequest(BaseModel):
    level: Literal["beginner", "intermediate", "advanced"]


class AddSkillResponse(BaseModel):
    skill: SkillResponse
    level: str
    added_at: datetime
    xp_earned: int
    title: str
    streak_count: int


@router.get("", response_model=list[SkillResponse])
async def get_skills(
    category: str | None = Query(None),
    db: AsyncSession = Depends(get_session),
) -> list[SkillResponse]:
    """Skill catalogue, optionally filtered by category."""
    return [SkillResponse.model_validate(s) for s in await list_skills(db, category)]


@router.post("/users/{user_id}", response_model=AddSkillResponse, status_code=201)
async def add_skill(
    user_id: int,
    body: AddSkillRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
    evaluator: AIEvaluator = Depends(get_evaluator),
) -> AddSkillResponse:
    """Add a skill to your own profile; awards flat XP and counts toward the streak.

    Job recommendations are rematched in the background afterwards.
    """
    require_self(user_id, user)
    try:
        user_skill = await add_user_skill(db, user.id, body.skill_id, body.level)
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except DuplicateSkillError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await db.commit()

    title = await award_xp(
        db, user.id, SKILL_ADDED_XP, XPSource.SKILL_ADDED, body.skill_id,
        meta={"skill": user_skill.skill.name, "level": body.level},
        redis=redis,
    )
    streak = await touch_streak(db, user.id, redis=redis)
    background_tasks.add_task(refresh_recommendations, user.id, evaluator)

    return AddSkillResponse(
        skill=SkillResponse.model_validate(user_skill.skill),
        level=user_skill.level,
        added_at=user_skill.created_at,
        xp_earned=SKILL_ADDED_XP,
        title=streak.title or title,
        streak_count=streak.streak_count,
    )


async def _profile_skills(db: AsyncSession, user_id: int) -> list[UserSkillResponse]:
    return [
        UserSkillResponse(
            id=us.skill.id,
            name=us.skill.name,
            category=us.skill.category,
            level=us.level,
            created_at=us.created_at,
        )
        for us in await get_user_skills(db, user_id)
    ]


@router.put("/users/{user_id}/{skill_id}", response_model=list[UserSkillResponse])
async def update_skill_level(
    user_id: int,
    skill_id: int,
    body: UpdateSkillRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[UserSkillResponse]:
    """Change the level of a skill on your profile. No XP is involved."""
    require_self(user_id, user)
    try:
        await update_user_skill_level(db, user.id, skill_id, body.level)
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return await _profile_skills(db, user.id)


@router.delete("/users/{user_id}/{skill_id}", response_model=list[UserSkillResponse])
async def remove_skill(
    user_id: int,
    skill_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[UserSkillResponse]:
    """Remove a skill from your profile. XP already earned is kept."""
    require_self(user_id, user)
    try:
        await remove_user_skill(db, user.id, skill_id)
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return await _profile_skills(db, user.id)
