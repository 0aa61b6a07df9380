"""Pydantic response models for user progression endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel

from strive.pagination import PaginationMeta


class UserSkillResponse(BaseModel):
    id: int
    name: str
    category: str
    level: str
    created_at: datetime


class StreakDayResponse(BaseModel):
    date: date
    is_active: bool


class TitleProgressResponse(BaseModel):
    title: str
    next_title: str | None
    next_title_xp: int | None
    xp_to_next: int


class UserProfileResponse(BaseModel):
    id: int
    name: str
    avatar_url: str | None
    xp_total: int
    title: str
    streak_count: int
    last_active_date: date | None
    created_at: datetime | None
    rank: int
    title_progress: TitleProgressResponse
    skills: list[UserSkillResponse]
    streak_calendar: list[StreakDayResponse]


class XPHistoryEntry(BaseModel):
    model_config = {"from_attributes": True}

    source_type: str
    source_id: int | None
    xp_amount: int
    created_at: datetime


class XPHistoryResponse(BaseModel):
    xp_history: list[XPHistoryEntry]
    pagination: PaginationMeta


class ActivityEntry(BaseModel):
    model_config = {"from_attributes": True}

    type: str
    meta: dict[str, Any]
    xp_earned: int
    created_at: datetime


class ActivitiesResponse(BaseModel):
    activities: list[ActivityEntry]
    pagination: PaginationMeta


class TitleHistoryEntry(BaseModel):
    title: str
    xp_total: int
    achieved_at: datetime
    source: str


class TitleThresholdResponse(BaseModel):
    title: str
    xp_required: int


class TitlesResponse(BaseModel):
    titles: list[TitleThresholdResponse]


class ActivityTypeStats(BaseModel):
    type: str
    count: int
    total_xp: int


class ActivityStatsResponse(BaseModel):
    by_type: list[ActivityTypeStats]
    total_activities: int
    total_xp_earned: int
    first_activity: datetime | None
    last_activity: datetime | None
    streak_count: int
    last_active_date: date | None
