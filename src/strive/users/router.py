"""User progression router: profile, XP history, activities and their stats, title history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from strive.auth.dependencies import get_current_user, require_self
from strive.database import get_session
from strive.db.models import User
from strive.pagination import PageParams, PaginationMeta, page_params
from strive.progression.ledger import (
    activity_stats,
    list_activities,
    list_ledger_chronological,
    list_xp_history,
)
from strive.progression.sources import XPSource
from strive.progression.streak_service import local_today, streak_calendar
from strive.progression.titles import title_history, title_progress
from strive.users.schemas import (
    ActivitiesResponse,
    ActivityEntry,
    ActivityStatsResponse,
    ActivityTypeStats,
    StreakDayResponse,
    TitleHistoryEntry,
    TitleProgressResponse,
    UserProfileResponse,
    UserSkillResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)
from strive.users.service import get_user, get_user_rank, get_user_skills

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


async def _require_user(db: AsyncSession, user_id: int) -> User:
    user = await get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}", response_model=UserProfileResponse)
async def get_profile(
    user_id: int,
    _viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserProfileResponse:
    """Profile with progression state, rank, skills and the 30-day streak calendar."""
    user = await _require_user(db, user_id)
    rank = await get_user_rank(db, user.xp_total)
    skills = await get_user_skills(db, user.id)

    return UserProfileResponse(
        id=user.id,
        name=user.name,
        avatar_url=user.avatar_url,
        xp_total=user.xp_total,
        title=user.title,
        streak_count=user.streak_count,
        last_active_date=user.last_active_date,
        created_at=user.created_at,
        rank=rank,
        title_progress=TitleProgressResponse(**title_progress(user.xp_total)),
        skills=[
            UserSkillResponse(
                id=us.skill.id,
                name=us.skill.name,
                category=us.skill.category,
                level=us.level,
                created_at=us.created_at,
            )
            for us in skills
        ],
        streak_calendar=[
            StreakDayResponse(**day)  # type: ignore[arg-type]
            for day in streak_calendar(user.last_active_date, user.streak_count, local_today())
        ],
    )


@router.get("/{user_id}/xp-history", response_model=XPHistoryResponse)
async def get_xp_history(
    user_id: int,
    params: PageParams = Depends(page_params),
    _viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> XPHistoryResponse:
    """Paginated XP ledger, newest first."""
    await _require_user(db, user_id)
    rows, total = await list_xp_history(db, user_id, page=params.page, limit=params.limit)
    return XPHistoryResponse(
        xp_history=[XPHistoryEntry.model_validate(r) for r in rows],
        pagination=PaginationMeta.build(params, total),
    )


@router.get("/{user_id}/activities", response_model=ActivitiesResponse)
async def get_activities(
    user_id: int,
    params: PageParams = Depends(page_params),
    activity_type: XPSource | None = Query(None, alias="type"),
    _viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ActivitiesResponse:
    """Paginated activity timeline, optionally filtered by ?type=."""
    await _require_user(db, user_id)
    rows, total = await list_activities(
        db, user_id, page=params.page, limit=params.limit, activity_type=activity_type
    )
    return ActivitiesResponse(
        activities=[ActivityEntry.model_validate(r) for r in rows],
        pagination=PaginationMeta.build(params, total),
    )


@router.get("/{user_id}/activity-stats", response_model=ActivityStatsResponse)
async def get_activity_stats(
    user_id: int,
    viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ActivityStatsResponse:
    """Your activity breakdown by type, with the streak from your profile."""
    require_self(user_id, viewer, "You can only view your own activity statistics")
    stats = await activity_stats(db, user_id)
    by_type = stats.pop("by_type")
    return ActivityStatsResponse(
        **stats,
        by_type=[ActivityTypeStats(**row) for row in by_type],
        streak_count=viewer.streak_count,
        last_active_date=viewer.last_active_date,
    )


@router.get("/{user_id}/title-history", response_model=list[TitleHistoryEntry])
async def get_title_history(
    user_id: int,
    _viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[TitleHistoryEntry]:
    """Title at every ledger entry, replayed from the start."""
    await _require_user(db, user_id)
    records = await list_ledger_chronological(db, user_id)
    return [TitleHistoryEntry(**entry) for entry in title_history(records)]
