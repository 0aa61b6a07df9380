"""User profile queries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from strive.db.models import User, UserSkill

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_rank(db: AsyncSession, xp_total: int) -> int:
    """1-based XP rank: one more than the number of users strictly ahead."""
    result = await db.execute(select(func.count()).select_from(User).where(User.xp_total > xp_total))
    return result.scalar_one() + 1


async def get_user_skills(db: AsyncSession, user_id: int) -> list[UserSkill]:
    """A user's skills, most recently added first."""
    result = await db.execute(
        select(UserSkill)
        .where(UserSkill.user_id == user_id)
        .order_by(UserSkill.created_at.desc(), UserSkill.id.desc())
    )
    return list(result.scalars().unique().all())
