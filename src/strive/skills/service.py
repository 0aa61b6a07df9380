"""Skill catalogue and user skill management."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.db.models import Skill, UserSkill

logger = structlog.get_logger()


class SkillNotFoundError(LookupError):
    pass


class DuplicateSkillError(ValueError):
    pass


async def list_skills(db: AsyncSession, category: str | None = None) -> list[Skill]:
    query = select(Skill).order_by(Skill.category, Skill.name)
    if category is not None:
        query = query.where(Skill.category == category)
    result = await db.execute(query)
    return list(result.scalars().all())


async def add_user_skill(db: AsyncSession, user_id: int, skill_id: int, level: str) -> UserSkill:
    """
    Attach a catalogue skill to a user.

    Raises:
        SkillNotFoundError: If the skill does not exist.
        DuplicateSkillError: If the user already has it.
    """
    skill = await db.get(Skill, skill_id)
    if skill is None:
        msg = "Skill not found"
        raise SkillNotFoundError(msg)

    existing = await db.execute(
        select(UserSkill.id).where(UserSkill.user_id == user_id, UserSkill.skill_id == skill_id)
    )
    if existing.scalar_one_or_none() is not None:
        msg = "You already have this skill"
        raise DuplicateSkillError(msg)

    user_skill = UserSkill(
        user_id=user_id,
        skill_id=skill_id,
        level=level,
        created_at=datetime.now(timezone.utc),
    )
    user_skill.skill = skill
    db.add(user_skill)
    await db.flush()
    logger.info("skill_added", user_id=user_id, skill_id=skill_id, level=level)
    return user_skill


async def get_user_skill(db: AsyncSession, user_id: int, skill_id: int) -> UserSkill:
    result = await db.execute(
        select(UserSkill).where(UserSkill.user_id == user_id, UserSkill.skill_id == skill_id)
    )
    user_skill = result.scalar_one_or_none()
    if user_skill is None:
        msg = "Skill not found in your profile"
        raise SkillNotFoundError(msg)
    return user_skill


async def update_user_skill_level(db: AsyncSession, user_id: int, skill_id: int, level: str) -> UserSkill:
    user_skill = await get_user_skill(db, user_id, skill_id)
    user_skill.level = level
    await db.flush()
    logger.info("skill_level_updated", user_id=user_id, skill_id=skill_id, level=level)
    return user_skill


async def remove_user_skill(db: AsyncSession, user_id: int, skill_id: int) -> None:
    """Detach a skill. XP earned for adding it stays in the ledger."""
    user_skill = await get_user_skill(db, user_id, skill_id)
    await db.delete(user_skill)
    await db.flush()
    logger.info("skill_removed", user_id=user_id, skill_id=skill_id)
