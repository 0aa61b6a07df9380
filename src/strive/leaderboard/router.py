"""Leaderboards and the public title table."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.auth.dependencies import get_optional_user
from strive.database import get_session
from strive.db.models import User
from strive.pagination import PageParams, PaginationMeta, page_params
from strive.progression.titles import TITLE_THRESHOLDS
from strive.users.schemas import TitlesResponse, TitleThresholdResponse
from strive.users.service import get_user_rank

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


class LeaderboardEntry(BaseModel):
    model_config = {"from_attributes": True}

    rank: int
    id: int
    name: str
    avatar_url: str | None
    title: str
    xp_total: int
    streak_count: int


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntry]
    user_rank: int | None
    pagination: PaginationMeta


def _entry(rank: int, user: User) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=rank,
        id=user.id,
        name=user.name,
        avatar_url=user.avatar_url,
        title=user.title,
        xp_total=user.xp_total,
        streak_count=user.streak_count,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def xp_leaderboard(
    params: PageParams = Depends(page_params),
    viewer: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Users ordered by XP; includes the caller's rank when authenticated."""
    offset = (params.page - 1) * params.limit
    total = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    result = await db.execute(
        select(User)
        .order_by(User.xp_total.desc(), User.id.asc())
        .offset(offset)
        .limit(params.limit)
    )
    users = result.scalars().all()

    user_rank = await get_user_rank(db, viewer.xp_total) if viewer is not None else None
    return LeaderboardResponse(
        leaderboard=[_entry(offset + i + 1, u) for i, u in enumerate(users)],
        user_rank=user_rank,
        pagination=PaginationMeta.build(params, total),
    )


@router.get("/leaderboard/streaks", response_model=list[LeaderboardEntry])
async def streak_leaderboard(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> list[LeaderboardEntry]:
    """Users with an active streak, longest first, XP as tie-breaker."""
    result = await db.execute(
        select(User)
        .where(User.streak_count > 0)
        .order_by(User.streak_count.desc(), User.xp_total.desc(), User.id.asc())
        .limit(limit)
    )
    return [_entry(i + 1, u) for i, u in enumerate(result.scalars().all())]


@router.get("/titles", response_model=TitlesResponse)
async def list_titles() -> TitlesResponse:
    """Title thresholds, lowest first."""
    return TitlesResponse(
        titles=[TitleThresholdResponse(**t) for t in reversed(TITLE_THRESHOLDS)],
    )
