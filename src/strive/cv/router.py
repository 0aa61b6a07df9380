"""CV review router: submission, polling, history and stats."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import AIEvaluator, get_evaluator
from strive.auth.dependencies import get_current_user, require_self
from strive.cv.service import (
    CVReviewNotFoundError,
    analyze_cv_review,
    create_review,
    delete_review,
    get_review,
    list_reviews,
    review_stats,
)
from strive.database import get_session
from strive.db.models import User
from strive.pagination import PageParams, PaginationMeta, page_params

router = APIRouter(prefix="/api/v1/cv", tags=["CV"])


class CVSubmitRequest(BaseModel):
    cv_text: str = Field(..., min_length=50, max_length=50_000)


class CVReviewResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    status: str
    result: dict[str, Any] | None
    xp_earned: int
    created_at: datetime
    completed_at: datetime | None


class CVHistoryResponse(BaseModel):
    reviews: list[CVReviewResponse]
    pagination: PaginationMeta


class CVStatsResponse(BaseModel):
    total_reviews: int
    completed_reviews: int
    processing_reviews: int
    failed_reviews: int
    average_score: float | None
    latest_review: CVReviewResponse | None


@router.post("/reviews", response_model=CVReviewResponse, status_code=202)
async def submit_cv(
    body: CVSubmitRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    evaluator: AIEvaluator = Depends(get_evaluator),
) -> CVReviewResponse:
    """Queue a CV for analysis. Poll GET /reviews/{id} for the result."""
    review = await create_review(db, user.id, body.cv_text)
    await db.commit()
    background_tasks.add_task(analyze_cv_review, review.id, body.cv_text, evaluator)
    return CVReviewResponse.model_validate(review)


@router.get("/reviews/{review_id}", response_model=CVReviewResponse)
async def get_cv_review(
    review_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CVReviewResponse:
    try:
        review = await get_review(db, review_id, user.id)
    except CVReviewNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return CVReviewResponse.model_validate(review)


@router.delete("/reviews/{review_id}", status_code=204)
async def remove_cv_review(
    review_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    try:
        await delete_review(db, review_id, user.id)
    except CVReviewNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()


@router.get("/users/{user_id}/history", response_model=CVHistoryResponse)
async def get_cv_history(
    user_id: int,
    params: PageParams = Depends(page_params),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CVHistoryResponse:
    """Your reviews, newest first."""
    require_self(user_id, user, "You can only view your own CV history")
    reviews, total = await list_reviews(db, user_id, page=params.page, limit=params.limit)
    return CVHistoryResponse(
        reviews=[CVReviewResponse.model_validate(r) for r in reviews],
        pagination=PaginationMeta.build(params, total),
    )


@router.get("/users/{user_id}/stats", response_model=CVStatsResponse)
async def get_cv_stats(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CVStatsResponse:
    require_self(user_id, user, "You can only view your own CV stats")
    stats = await review_stats(db, user_id)
    latest = stats.pop("latest_review")
    return CVStatsResponse(
        **stats,
        latest_review=CVReviewResponse.model_validate(latest) if latest is not None else None,
    )
