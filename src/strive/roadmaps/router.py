"""Roadmaps router: step quizzes, progress and learning stats."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import AIEvaluator, get_evaluator
from strive.auth.dependencies import get_current_user, require_self
from strive.database import get_session
from strive.db.models import User
from strive.progression.sources import XPSource, quiz_passed, quiz_xp
from strive.progression.streak_service import touch_streak
from strive.progression.xp_service import award_xp
from strive.redis_client import get_optional_redis
from strive.roadmaps.service import (
    QuizNotFoundError,
    RoadmapNotFoundError,
    StepAlreadyCompletedError,
    complete_step,
    course_counts,
    ensure_not_completed,
    get_step_quiz,
    public_questions,
    roadmap_progress,
)
from strive.users.service import get_user_rank

router = APIRouter(prefix="/api/v1/roadmaps", tags=["Roadmaps"])


class QuizQuestion(BaseModel):
    id: int | str | None
    question: str | None
    options: list[str]


class QuizResponse(BaseModel):
    step_id: int
    questions: list[QuizQuestion]


class QuizAnswer(BaseModel):
    question_id: int | str
    answer: str


class QuizSubmitRequest(BaseModel):
    answers: list[QuizAnswer] = Field(..., min_length=1)


class QuizResultResponse(BaseModel):
    score: int
    total_questions: int
    correct_answers: int
    feedback: str
    detailed_results: list[dict]
    xp_earned: int
    completed: bool
    title: str
    streak_count: int


class StepProgressResponse(BaseModel):
    step_id: int
    title: str
    position: int
    completed: bool
    score: int | None
    completed_at: datetime | None


class RoadmapProgressResponse(BaseModel):
    roadmap_id: int
    total_steps: int
    completed_steps: int
    progress_percentage: float
    steps: list[StepProgressResponse]


class LearningStatsResponse(BaseModel):
    rank: int
    total_xp: int
    title: str
    active_courses: int
    completed_courses: int


@router.get("/users/{user_id}/stats", response_model=LearningStatsResponse)
async def get_learning_stats(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LearningStatsResponse:
    """Rank, XP and roadmap counts for your own profile."""
    require_self(user_id, user, "You can only view your own learning statistics")
    active, completed = await course_counts(db, user.id)
    return LearningStatsResponse(
        rank=await get_user_rank(db, user.xp_total),
        total_xp=user.xp_total,
        title=user.title,
        active_courses=active,
        completed_courses=completed,
    )


@router.get("/{roadmap_id}/progress", response_model=RoadmapProgressResponse)
async def get_roadmap_progress(
    roadmap_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> RoadmapProgressResponse:
    try:
        progress = await roadmap_progress(db, user.id, roadmap_id)
    except RoadmapNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return RoadmapProgressResponse(**progress)  # type: ignore[arg-type]


@router.get("/{roadmap_id}/steps/{step_id}/quiz", response_model=QuizResponse)
async def get_quiz(
    roadmap_id: int,
    step_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> QuizResponse:
    try:
        quiz = await get_step_quiz(db, roadmap_id, step_id)
    except QuizNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return QuizResponse(step_id=step_id, questions=public_questions(quiz))  # type: ignore[arg-type]


@router.post("/{roadmap_id}/steps/{step_id}/quiz", response_model=QuizResultResponse)
async def submit_quiz(
    roadmap_id: int,
    step_id: int,
    body: QuizSubmitRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    evaluator: AIEvaluator = Depends(get_evaluator),
    redis: object = Depends(get_optional_redis),
) -> QuizResultResponse:
    """Grade a quiz. Passing completes the step and awards score-scaled XP."""
    try:
        quiz = await get_step_quiz(db, roadmap_id, step_id)
        await ensure_not_completed(db, user.id, step_id)
    except QuizNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StepAlreadyCompletedError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    grade = await evaluator.grade_quiz(quiz.questions, [a.model_dump() for a in body.answers])
    score = grade["score"]
    passed = quiz_passed(score)

    xp_earned = 0
    title = user.title
    streak_count = user.streak_count
    if passed:
        await complete_step(db, user.id, roadmap_id, step_id, score)
        await db.commit()

        xp_earned = quiz_xp(score)
        title = await award_xp(
            db, user.id, xp_earned, XPSource.QUIZ_COMPLETE, step_id,
            meta={"roadmap_id": roadmap_id, "score": score},
            redis=redis,
        )
        streak = await touch_streak(db, user.id, redis=redis)
        title = streak.title or title
        streak_count = streak.streak_count

    return QuizResultResponse(
        score=score,
        total_questions=grade["total_questions"],
        correct_answers=grade["correct_answers"],
        feedback=grade["feedback"],
        detailed_results=grade["detailed_results"],
        xp_earned=xp_earned,
        completed=passed,
        title=title,
        streak_count=streak_count,
    )
