"""XP source types and the reward rules used by feature call sites."""

from __future__ import annotations

import math
from enum import Enum

from strive.progression.errors import InvalidXPAward


class XPSource(str, Enum):
    """Every event type that may write to the XP ledger."""

    QUIZ_COMPLETE = "quiz_complete"
    CHALLENGE_COMPLETE = "challenge_complete"
    CV_REVIEW = "cv_review"
    STREAK_ACHIEVED = "streak_achieved"
    COMMUNITY_POST = "community_post"
    SKILL_ADDED = "skill_added"


def parse_source(value: str | XPSource) -> XPSource:
    """Coerce a raw source type, rejecting anything outside XPSource."""
    if isinstance(value, XPSource):
        return value
    try:
        return XPSource(value)
    except ValueError as e:
        msg = f"Unknown XP source type: {value!r}"
        raise InvalidXPAward(msg) from e


# --- Reward rules ---
QUIZ_MAX_XP = 30
QUIZ_PASS_SCORE = 50
SKILL_ADDED_XP = 10
COMMUNITY_POST_XP = 5
CV_REVIEW_MIN_XP = 10

STREAK_BONUS_INTERVAL = 7
STREAK_BONUS_PER_DAY = 2
STREAK_BONUS_CAP = 50


def quiz_xp(score: int | float) -> int:
    """XP for a quiz score (0-100), rounding halves up."""
    return math.floor((score * QUIZ_MAX_XP + 50) / 100)


def quiz_passed(score: int | float) -> bool:
    return score >= QUIZ_PASS_SCORE


def cv_review_xp(overall_score: int) -> int:
    """One XP per ten points of CV score, never below the minimum."""
    return max(CV_REVIEW_MIN_XP, overall_score // 10)


def streak_bonus(streak_count: int) -> int:
    """Bonus XP for reaching a streak length; 0 unless it is a positive multiple of 7.

    >>> streak_bonus(7), streak_bonus(8), streak_bonus(28)
    (14, 0, 50)
    """
    if streak_count <= 0 or streak_count % STREAK_BONUS_INTERVAL:
        return 0
    return min(streak_count * STREAK_BONUS_PER_DAY, STREAK_BONUS_CAP)
