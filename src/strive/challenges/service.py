"""Coding challenges: catalogue and per-user attempt state.

An attempt moves in_progress -> completed | failed. A failed attempt may be
restarted; a completed one is final.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.db.models import Challenge, UserChallenge

logger = structlog.get_logger()

IN_PROGRESS = "in_progress"
COMPLETED = "completed"
FAILED = "failed"


class ChallengeNotFoundError(LookupError):
    pass


class ChallengeStateError(ValueError):
    """The attempt is not in a state that allows the requested move."""


async def list_challenges(
    db: AsyncSession,
    difficulty: str | None = None,
    challenge_type: str | None = None,
) -> list[Challenge]:
    query = select(Challenge).order_by(Challenge.id)
    if difficulty is not None:
        query = query.where(Challenge.difficulty == difficulty)
    if challenge_type is not None:
        query = query.where(Challenge.type == challenge_type)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_challenge(db: AsyncSession, challenge_id: int) -> Challenge:
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        msg = "Challenge not found"
        raise ChallengeNotFoundError(msg)
    return challenge


async def get_attempt(db: AsyncSession, user_id: int, challenge_id: int) -> UserChallenge | None:
    result = await db.execute(
        select(UserChallenge).where(
            UserChallenge.user_id == user_id,
            UserChallenge.challenge_id == challenge_id,
        )
    )
    return result.scalar_one_or_none()


async def start_challenge(db: AsyncSession, user_id: int, challenge_id: int) -> UserChallenge:
    """
    Open (or reopen after a failure) an attempt.

    Raises:
        ChallengeNotFoundError: Unknown challenge.
        ChallengeStateError: Already completed or already in progress.
    """
    await get_challenge(db, challenge_id)
    now = datetime.now(timezone.utc)

    attempt = await get_attempt(db, user_id, challenge_id)
    if attempt is not None:
        if attempt.status == COMPLETED:
            msg = "Challenge already completed"
            raise ChallengeStateError(msg)
        if attempt.status == IN_PROGRESS:
            msg = "You are already working on this challenge"
            raise ChallengeStateError(msg)
        attempt.status = IN_PROGRESS
        attempt.score = None
        attempt.started_at = now
        attempt.completed_at = None
    else:
        attempt = UserChallenge(
            user_id=user_id,
            challenge_id=challenge_id,
            status=IN_PROGRESS,
            started_at=now,
        )
        db.add(attempt)

    await db.flush()
    logger.info("challenge_started", user_id=user_id, challenge_id=challenge_id)
    return attempt


async def record_submission(
    db: AsyncSession,
    user_id: int,
    challenge_id: int,
    passed: bool,
    score: int,
) -> UserChallenge:
    """Close an in-progress attempt with the evaluation outcome."""
    attempt = await require_in_progress(db, user_id, challenge_id)
    attempt.status = COMPLETED if passed else FAILED
    attempt.score = score
    attempt.completed_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info(
        "challenge_submitted",
        user_id=user_id,
        challenge_id=challenge_id,
        passed=passed,
        score=score,
    )
    return attempt


async def require_in_progress(db: AsyncSession, user_id: int, challenge_id: int) -> UserChallenge:
    attempt = await get_attempt(db, user_id, challenge_id)
    if attempt is None:
        msg = "Start the challenge before submitting"
        raise ChallengeStateError(msg)
    if attempt.status == COMPLETED:
        msg = "Challenge already completed"
        raise ChallengeStateError(msg)
    if attempt.status != IN_PROGRESS:
        msg = "Start the challenge again before submitting"
        raise ChallengeStateError(msg)
    return attempt
