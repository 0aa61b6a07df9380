"""Jobs router: listings, metadata, similar listings and recommendations."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import AIEvaluator, get_evaluator
from strive.auth.dependencies import get_current_user, get_optional_user, require_self
from strive.database import get_session
from strive.db.models import JobRecommendation, User
from strive.jobs.service import (
    JobNotFoundError,
    get_job,
    get_recommendation,
    job_metadata,
    list_jobs,
    list_recommendations,
    regenerate_recommendations,
    similar_jobs,
)
from strive.pagination import PageParams, PaginationMeta, page_params

router = APIRouter(prefix="/api/v1/jobs", tags=["Jobs"])


class JobResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    title: str
    company: str
    location: str
    salary_min: int | None
    salary_max: int | None
    tags: list[str]
    requirements: list[str]
    description: str
    is_remote: bool
    is_fulltime: bool
    created_at: datetime


class JobDetailResponse(JobResponse):
    is_recommended: bool = False
    recommendation_score: int | None = None
    recommendation_reason: str | None = None


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    pagination: PaginationMeta


class JobMetadataResponse(BaseModel):
    companies: list[str]
    locations: list[str]
    tags: list[str]


class RecommendedJobResponse(BaseModel):
    score: int
    reason: str
    recommended_at: datetime
    job: JobResponse


def _recommended(rec: JobRecommendation) -> RecommendedJobResponse:
    return RecommendedJobResponse(
        score=rec.score,
        reason=rec.reason,
        recommended_at=rec.created_at,
        job=JobResponse.model_validate(rec.job),
    )


@router.get("", response_model=JobListResponse)
async def get_jobs(
    params: PageParams = Depends(page_params),
    location: str | None = Query(None, max_length=200),
    remote: bool | None = Query(None),
    fulltime: bool | None = Query(None),
    min_salary: int | None = Query(None, ge=0),
    max_salary: int | None = Query(None, ge=0),
    db: AsyncSession = Depends(get_session),
) -> JobListResponse:
    """Job listings, newest first."""
    jobs, total = await list_jobs(
        db,
        page=params.page,
        limit=params.limit,
        location=location,
        remote=remote,
        fulltime=fulltime,
        min_salary=min_salary,
        max_salary=max_salary,
    )
    return JobListResponse(
        jobs=[JobResponse.model_validate(j) for j in jobs],
        pagination=PaginationMeta.build(params, total),
    )


@router.get("/meta/categories", response_model=JobMetadataResponse)
async def get_job_metadata(db: AsyncSession = Depends(get_session)) -> JobMetadataResponse:
    return JobMetadataResponse(**await job_metadata(db))


@router.get("/users/{user_id}/recommended", response_model=list[RecommendedJobResponse])
async def get_recommended_jobs(
    user_id: int,
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[RecommendedJobResponse]:
    """Your own recommendations, best match first."""
    require_self(user_id, user, "You can only view your own job recommendations")
    return [_recommended(r) for r in await list_recommendations(db, user_id, limit=limit)]


@router.post("/users/{user_id}/recommendations", response_model=list[RecommendedJobResponse])
async def generate_recommended_jobs(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    evaluator: AIEvaluator = Depends(get_evaluator),
) -> list[RecommendedJobResponse]:
    """Rematch your skills against current listings now."""
    require_self(user_id, user, "You can only generate recommendations for your own profile")
    recommendations = await regenerate_recommendations(db, user.id, evaluator)
    await db.commit()
    return [_recommended(r) for r in recommendations]


@router.get("/{job_id}", response_model=JobDetailResponse)
async def get_job_detail(
    job_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> JobDetailResponse:
    """Listing detail; flags whether it is recommended for the caller."""
    try:
        job = await get_job(db, job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    detail = JobDetailResponse.model_validate(job)
    if user is not None:
        rec = await get_recommendation(db, user.id, job.id)
        if rec is not None:
            detail.is_recommended = True
            detail.recommendation_score = rec.score
            detail.recommendation_reason = rec.reason
    return detail


@router.get("/{job_id}/similar", response_model=list[JobResponse])
async def get_similar_jobs(
    job_id: int,
    limit: int = Query(5, ge=1, le=20),
    db: AsyncSession = Depends(get_session),
) -> list[JobResponse]:
    try:
        job = await get_job(db, job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return [JobResponse.model_validate(j) for j in await similar_jobs(db, job, limit=limit)]
