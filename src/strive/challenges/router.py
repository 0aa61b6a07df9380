"""Challenges router: catalogue, start and submit."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import AIEvaluator, get_evaluator
from strive.auth.dependencies import get_current_user, get_optional_user
from strive.challenges.service import (
    ChallengeNotFoundError,
    ChallengeStateError,
    get_attempt,
    get_challenge,
    list_challenges,
    record_submission,
    require_in_progress,
    start_challenge,
)
from strive.database import get_session
from strive.db.models import User
from strive.progression.sources import XPSource
from strive.progression.streak_service import touch_streak
from strive.progression.xp_service import award_xp
from strive.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1/challenges", tags=["Challenges"])


class ChallengeResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    title: str
    description: str
    type: str
    difficulty: str
    xp_reward: int


class ChallengeDetailResponse(ChallengeResponse):
    user_status: str | None = None
    user_score: int | None = None


class AttemptResponse(BaseModel):
    challenge_id: int
    status: str
    started_at: datetime


class SubmitRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50_000)
    language: str = Field(..., min_length=1, max_length=32)


class SubmitResponse(BaseModel):
    passed: bool
    score: int
    feedback: str
    hints: list[str]
    test_results: list[dict]
    xp_earned: int
    title: str
    streak_count: int


@router.get("", response_model=list[ChallengeResponse])
async def get_challenges(
    difficulty: str | None = Query(None),
    type: str | None = Query(None),  # noqa: A002
    db: AsyncSession = Depends(get_session),
) -> list[ChallengeResponse]:
    challenges = await list_challenges(db, difficulty=difficulty, challenge_type=type)
    return [ChallengeResponse.model_validate(c) for c in challenges]


@router.get("/{challenge_id}", response_model=ChallengeDetailResponse)
async def get_challenge_detail(
    challenge_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> ChallengeDetailResponse:
    """Challenge detail, with the caller's attempt state when authenticated."""
    try:
        challenge = await get_challenge(db, challenge_id)
    except ChallengeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    detail = ChallengeDetailResponse.model_validate(challenge)
    if user is not None:
        attempt = await get_attempt(db, user.id, challenge_id)
        if attempt is not None:
            detail.user_status = attempt.status
            detail.user_score = attempt.score
    return detail


@router.post("/{challenge_id}/start", response_model=AttemptResponse)
async def start(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AttemptResponse:
    try:
        attempt = await start_challenge(db, user.id, challenge_id)
    except ChallengeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ChallengeStateError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return AttemptResponse(challenge_id=challenge_id, status=attempt.status, started_at=attempt.started_at)


@router.post("/{challenge_id}/submit", response_model=SubmitResponse)
async def submit(
    challenge_id: int,
    body: SubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    evaluator: AIEvaluator = Depends(get_evaluator),
    redis: object = Depends(get_optional_redis),
) -> SubmitResponse:
    """Evaluate a solution.

    A pass awards the challenge's xp_reward and counts toward the streak.
    A fail is still recorded in the ledger, with zero XP.
    """
    try:
        challenge = await get_challenge(db, challenge_id)
        await require_in_progress(db, user.id, challenge_id)
    except ChallengeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ChallengeStateError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    evaluation = await evaluator.evaluate_code(body.code, body.language, challenge.description)
    passed = evaluation["passed"]
    await record_submission(db, user.id, challenge_id, passed, evaluation["score"])
    await db.commit()

    xp_earned = challenge.xp_reward if passed else 0
    title = await award_xp(
        db, user.id, xp_earned, XPSource.CHALLENGE_COMPLETE, challenge_id,
        meta={"passed": passed, "score": evaluation["score"]},
        redis=redis,
    )
    if passed:
        streak = await touch_streak(db, user.id, redis=redis)
        title = streak.title or title
        streak_count = streak.streak_count
    else:
        await db.refresh(user)
        streak_count = user.streak_count

    return SubmitResponse(
        passed=passed,
        score=evaluation["score"],
        feedback=evaluation["feedback"],
        hints=evaluation["hints"],
        test_results=evaluation["test_results"],
        xp_earned=xp_earned,
        title=title,
        streak_count=streak_count,
    )
