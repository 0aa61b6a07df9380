"""XP ledger writer and read-side queries for XP history and activities."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from strive.db.models import Activity, XPHistory
from strive.progression.sources import XPSource


async def record_xp(
    db: AsyncSession,
    user_id: int,
    source: XPSource,
    source_id: int | None,
    amount: int,
    *,
    created_at: datetime,
    meta: dict[str, Any] | None = None,
) -> tuple[XPHistory, Activity]:
    """Append one ledger row and its matching activity row.

    Does not commit: must run inside the orchestrator's unit of work.
    """
    entry = XPHistory(
        user_id=user_id,
        source_type=source.value,
        source_id=source_id,
        xp_amount=amount,
        created_at=created_at,
    )
    activity = Activity(
        user_id=user_id,
        type=source.value,
        meta={**(meta or {}), "source_id": source_id},
        xp_earned=amount,
        created_at=created_at,
    )
    db.add_all([entry, activity])
    await db.flush()
    return entry, activity


async def list_xp_history(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[XPHistory], int]:
    """Paginated ledger rows, newest first."""
    total_result = await db.execute(
        select(func.count()).select_from(XPHistory).where(XPHistory.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(XPHistory)
        .where(XPHistory.user_id == user_id)
        .order_by(XPHistory.created_at.desc(), XPHistory.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_ledger_chronological(db: AsyncSession, user_id: int) -> list[XPHistory]:
    """All ledger rows for a user, oldest first (title history replay)."""
    result = await db.execute(
        select(XPHistory)
        .where(XPHistory.user_id == user_id)
        .order_by(XPHistory.created_at.asc(), XPHistory.id.asc())
    )
    return list(result.scalars().all())


async def list_activities(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 20,
    activity_type: XPSource | None = None,
) -> tuple[list[Activity], int]:
    """Paginated activity timeline, newest first, optionally filtered by type."""
    conditions = [Activity.user_id == user_id]
    if activity_type is not None:
        conditions.append(Activity.type == activity_type.value)

    total_result = await db.execute(select(func.count()).select_from(Activity).where(*conditions))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Activity)
        .where(*conditions)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def activity_stats(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Per-type counts and XP (most frequent first) plus overall totals."""
    by_type = await db.execute(
        select(Activity.type, func.count(), func.coalesce(func.sum(Activity.xp_earned), 0))
        .where(Activity.user_id == user_id)
        .group_by(Activity.type)
        .order_by(func.count().desc(), Activity.type)
    )
    totals = await db.execute(
        select(
            func.count(),
            func.coalesce(func.sum(Activity.xp_earned), 0),
            func.min(Activity.created_at),
            func.max(Activity.created_at),
        ).where(Activity.user_id == user_id)
    )
    count, xp, first, last = totals.one()
    return {
        "by_type": [
            {"type": activity_type, "count": n, "total_xp": int(total_xp)}
            for activity_type, n, total_xp in by_type.all()
        ],
        "total_activities": count,
        "total_xp_earned": int(xp),
        "first_activity": first,
        "last_activity": last,
    }
