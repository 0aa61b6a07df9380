"""Title thresholds and classification.

These values MUST match the frontend title badges exactly.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

# Highest threshold first; first match wins.
TITLE_THRESHOLDS: list[dict[str, Any]] = [
    {"title": "Expert", "xp_required": 10000},
    {"title": "Advanced", "xp_required": 5000},
    {"title": "Intermediate", "xp_required": 2000},
    {"title": "Skill Explorer", "xp_required": 500},
    {"title": "Beginner+", "xp_required": 100},
    {"title": "Beginner", "xp_required": 0},
]

DEFAULT_TITLE = TITLE_THRESHOLDS[-1]["title"]


def classify_title(xp_total: int) -> str:
    """Map cumulative XP to a title label."""
    for tier in TITLE_THRESHOLDS:
        if xp_total >= tier["xp_required"]:
            return tier["title"]
    return DEFAULT_TITLE


def title_progress(xp_total: int) -> dict[str, Any]:
    """Current title plus distance to the next one.

    At the top tier next_title is None and xp_to_next is 0.
    """
    for i, tier in enumerate(TITLE_THRESHOLDS):
        if xp_total >= tier["xp_required"]:
            break
    else:
        i, tier = len(TITLE_THRESHOLDS) - 1, TITLE_THRESHOLDS[-1]

    if i == 0:
        return {
            "title": tier["title"],
            "next_title": None,
            "next_title_xp": None,
            "xp_to_next": 0,
        }

    upcoming = TITLE_THRESHOLDS[i - 1]
    return {
        "title": tier["title"],
        "next_title": upcoming["title"],
        "next_title_xp": upcoming["xp_required"],
        "xp_to_next": upcoming["xp_required"] - xp_total,
    }


def title_history(records: Iterable[Any]) -> list[dict[str, Any]]:
    """Replay ledger rows (oldest first) into a running title timeline.

    Each record needs xp_amount, source_type and created_at attributes.
    """
    running = 0
    history: list[dict[str, Any]] = []
    for record in records:
        running += record.xp_amount
        achieved_at: datetime = record.created_at
        history.append({
            "title": classify_title(running),
            "xp_total": running,
            "achieved_at": achieved_at,
            "source": record.source_type,
        })
    return history
