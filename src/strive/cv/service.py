"""CV reviews: submission, background analysis, completion and history."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.ai.client import AIEvaluator
from strive.database import get_session_factory
from strive.db.models import CVReview
from strive.progression.sources import XPSource, cv_review_xp
from strive.progression.streak_service import touch_streak
from strive.progression.xp_service import award_xp
from strive.redis_client import get_optional_redis

logger = logging.getLogger(__name__)

PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


class CVReviewNotFoundError(LookupError):
    pass


async def create_review(db: AsyncSession, user_id: int, cv_text: str) -> CVReview:
    review = CVReview(
        user_id=user_id,
        cv_text=cv_text,
        status=PROCESSING,
        xp_earned=0,
        created_at=datetime.now(timezone.utc),
    )
    db.add(review)
    await db.flush()
    return review


async def get_review(db: AsyncSession, review_id: int, user_id: int) -> CVReview:
    """A review owned by user_id; other users' reviews look missing."""
    review = await db.get(CVReview, review_id)
    if review is None or review.user_id != user_id:
        msg = "CV review not found"
        raise CVReviewNotFoundError(msg)
    return review


async def list_reviews(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[CVReview], int]:
    """A user's reviews, newest first."""
    total = (
        await db.execute(select(func.count()).select_from(CVReview).where(CVReview.user_id == user_id))
    ).scalar_one()
    result = await db.execute(
        select(CVReview)
        .where(CVReview.user_id == user_id)
        .order_by(CVReview.created_at.desc(), CVReview.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def review_stats(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Counts per status, mean overall_score of completed reviews, latest review."""
    result = await db.execute(
        select(CVReview)
        .where(CVReview.user_id == user_id)
        .order_by(CVReview.created_at.desc(), CVReview.id.desc())
    )
    reviews = list(result.scalars().all())

    scores = [
        r.result["overall_score"]
        for r in reviews
        if r.status == COMPLETED and r.result and "overall_score" in r.result
    ]
    return {
        "total_reviews": len(reviews),
        "completed_reviews": sum(r.status == COMPLETED for r in reviews),
        "processing_reviews": sum(r.status == PROCESSING for r in reviews),
        "failed_reviews": sum(r.status == FAILED for r in reviews),
        "average_score": round(sum(scores) / len(scores), 1) if scores else None,
        "latest_review": reviews[0] if reviews else None,
    }


async def delete_review(db: AsyncSession, review_id: int, user_id: int) -> None:
    """Delete an owned review. XP already awarded for it stays in the ledger."""
    review = await get_review(db, review_id, user_id)
    await db.delete(review)
    await db.flush()
    logger.info("CV review %d deleted by user %d", review_id, user_id)


async def store_cv_analysis(db: AsyncSession, review_id: int, analysis: dict[str, Any]) -> CVReview:
    """Commit the analysis and mark the review completed."""
    review = await db.get(CVReview, review_id)
    if review is None:
        msg = "CV review not found"
        raise CVReviewNotFoundError(msg)

    review.status = COMPLETED
    review.result = analysis
    review.xp_earned = cv_review_xp(analysis["overall_score"])
    review.completed_at = datetime.now(timezone.utc)
    await db.commit()
    return review


async def award_cv_review(db: AsyncSession, review: CVReview, redis: object = None) -> None:
    await award_xp(
        db, review.user_id, review.xp_earned, XPSource.CV_REVIEW, review.id,
        meta={"overall_score": review.result["overall_score"]},
        redis=redis,
    )
    await touch_streak(db, review.user_id, redis=redis)


async def fail_cv_review(db: AsyncSession, review_id: int) -> None:
    review = await db.get(CVReview, review_id)
    if review is None:
        return
    review.status = FAILED
    review.completed_at = datetime.now(timezone.utc)
    await db.commit()


async def analyze_cv_review(review_id: int, cv_text: str, evaluator: AIEvaluator) -> None:
    """Background task: analyse the CV on its own session and complete the review.

    A failed analysis marks the review failed and awards nothing. Once the
    review is committed as completed it stays completed; an error from the
    award or the streak update is logged and re-raised.
    """
    async with get_session_factory()() as db:
        try:
            analysis = await evaluator.analyze_cv(cv_text)
            review = await store_cv_analysis(db, review_id, analysis)
        except Exception:
            logger.exception("CV analysis failed for review %d", review_id)
            await db.rollback()
            await fail_cv_review(db, review_id)
            return

        try:
            await award_cv_review(db, review, redis=get_optional_redis())
        except Exception:
            logger.exception("XP award failed for completed CV review %d", review_id)
            raise

    logger.info("CV review %d completed", review_id)
