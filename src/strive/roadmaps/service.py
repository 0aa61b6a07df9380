"""Roadmap steps, their quizzes, per-user completion and progress summaries."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.db.models import Quiz, Roadmap, RoadmapStep, UserRoadmapProgress

logger = structlog.get_logger()


class RoadmapNotFoundError(LookupError):
    pass


class QuizNotFoundError(LookupError):
    pass


class StepAlreadyCompletedError(ValueError):
    pass


async def get_step_quiz(db: AsyncSession, roadmap_id: int, step_id: int) -> Quiz:
    """The quiz attached to a step, only if the step belongs to the roadmap."""
    result = await db.execute(
        select(Quiz)
        .join(RoadmapStep, RoadmapStep.id == Quiz.step_id)
        .where(RoadmapStep.id == step_id, RoadmapStep.roadmap_id == roadmap_id)
    )
    quiz = result.scalar_one_or_none()
    if quiz is None:
        msg = "Quiz not found"
        raise QuizNotFoundError(msg)
    return quiz


async def get_progress(db: AsyncSession, user_id: int, step_id: int) -> UserRoadmapProgress | None:
    result = await db.execute(
        select(UserRoadmapProgress).where(
            UserRoadmapProgress.user_id == user_id,
            UserRoadmapProgress.step_id == step_id,
        )
    )
    return result.scalar_one_or_none()


async def ensure_not_completed(db: AsyncSession, user_id: int, step_id: int) -> None:
    progress = await get_progress(db, user_id, step_id)
    if progress is not None and progress.completed:
        msg = "Quiz already completed for this step"
        raise StepAlreadyCompletedError(msg)


async def complete_step(
    db: AsyncSession,
    user_id: int,
    roadmap_id: int,
    step_id: int,
    score: int,
) -> UserRoadmapProgress:
    progress = await get_progress(db, user_id, step_id)
    if progress is None:
        progress = UserRoadmapProgress(user_id=user_id, roadmap_id=roadmap_id, step_id=step_id)
        db.add(progress)
    progress.completed = True
    progress.score = score
    progress.completed_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("step_completed", user_id=user_id, roadmap_id=roadmap_id, step_id=step_id, score=score)
    return progress


async def roadmap_progress(db: AsyncSession, user_id: int, roadmap_id: int) -> dict[str, object]:
    """Completion of every step in a roadmap for one user, in step order."""
    if await db.get(Roadmap, roadmap_id) is None:
        msg = "Roadmap not found"
        raise RoadmapNotFoundError(msg)

    result = await db.execute(
        select(RoadmapStep, UserRoadmapProgress)
        .outerjoin(
            UserRoadmapProgress,
            (UserRoadmapProgress.step_id == RoadmapStep.id) & (UserRoadmapProgress.user_id == user_id),
        )
        .where(RoadmapStep.roadmap_id == roadmap_id)
        .order_by(RoadmapStep.position, RoadmapStep.id)
    )
    steps = [
        {
            "step_id": step.id,
            "title": step.title,
            "position": step.position,
            "completed": bool(progress and progress.completed),
            "score": progress.score if progress else None,
            "completed_at": progress.completed_at if progress else None,
        }
        for step, progress in result.all()
    ]
    done = sum(s["completed"] for s in steps)
    return {
        "roadmap_id": roadmap_id,
        "total_steps": len(steps),
        "completed_steps": done,
        "progress_percentage": round(done / len(steps) * 100, 2) if steps else 0.0,
        "steps": steps,
    }


async def course_counts(db: AsyncSession, user_id: int) -> tuple[int, int]:
    """(active, completed) roadmaps: started ones, and ones with every step done."""
    totals = await db.execute(
        select(RoadmapStep.roadmap_id, func.count()).group_by(RoadmapStep.roadmap_id)
    )
    step_counts = dict(totals.all())

    done = await db.execute(
        select(UserRoadmapProgress.roadmap_id, func.count())
        .where(UserRoadmapProgress.user_id == user_id, UserRoadmapProgress.completed.is_(True))
        .group_by(UserRoadmapProgress.roadmap_id)
    )
    completed_counts = dict(done.all())

    completed = sum(1 for rid, n in completed_counts.items() if n >= step_counts.get(rid, 0) > 0)
    return len(completed_counts), completed


def public_questions(quiz: Quiz) -> list[dict[str, object]]:
    """Questions without their answers or explanations."""
    return [
        {"id": q.get("id"), "question": q.get("question"), "options": q.get("options", [])}
        for q in quiz.questions
    ]
