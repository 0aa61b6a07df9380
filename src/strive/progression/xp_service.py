"""XP award orchestration: balance, title and ledger in one transaction."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from strive.db.models import User
from strive.progression.errors import InvalidXPAward, UserNotFoundError
from strive.progression.ledger import record_xp
from strive.progression.sources import XPSource, parse_source
from strive.progression.titles import classify_title

logger = logging.getLogger(__name__)

TITLE_PROMOTED_CHANNEL = "pubsub:title_promoted"


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit everything done in the block, or roll all of it back and re-raise.

    Anything pending on the session when the block starts is part of the
    same transaction, so callers commit their own action first.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


def validate_award(amount: int, source: str | XPSource) -> XPSource:
    """Reject negative or non-integer amounts and unknown sources."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        msg = f"XP amount must be an integer, got {amount!r}"
        raise InvalidXPAward(msg)
    if amount < 0:
        msg = f"XP amount must not be negative, got {amount}"
        raise InvalidXPAward(msg)
    return parse_source(source)


async def apply_xp(
    db: AsyncSession,
    user_id: int,
    amount: int,
    source: XPSource,
    source_id: int | None = None,
    *,
    meta: dict[str, Any] | None = None,
) -> tuple[str, str, int]:
    """Run the award steps without committing. Returns (old_title, new_title, xp_total).

    1. Relative increment of users.xp_total (takes the row lock)
    2. Read back the new total
    3. Recompute and persist the title
    4. Append ledger + activity rows
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(xp_total=User.xp_total + amount)
        .returning(User.xp_total)
    )
    xp_total = result.scalar_one_or_none()
    if xp_total is None:
        raise UserNotFoundError(user_id)

    old_title = classify_title(xp_total - amount)
    new_title = classify_title(xp_total)
    await db.execute(update(User).where(User.id == user_id).values(title=new_title))

    await record_xp(
        db,
        user_id,
        source,
        source_id,
        amount,
        created_at=datetime.now(timezone.utc),
        meta=meta,
    )
    return old_title, new_title, xp_total


async def award_xp(
    db: AsyncSession,
    user_id: int,
    amount: int,
    source: str | XPSource,
    source_id: int | None = None,
    *,
    meta: dict[str, Any] | None = None,
    redis: object = None,
) -> str:
    """Award XP atomically and return the user's (possibly new) title.

    Zero is a valid amount: it still writes ledger and activity rows.
    """
    xp_source = validate_award(amount, source)

    async with unit_of_work(db):
        old_title, new_title, xp_total = await apply_xp(
            db, user_id, amount, xp_source, source_id, meta=meta
        )

    logger.info(
        "XP awarded: user=%d amount=%d source=%s source_id=%s total=%d",
        user_id, amount, xp_source.value, source_id, xp_total,
    )

    if new_title != old_title:
        await publish_title_promoted(redis, user_id, old_title, new_title, xp_total)

    return new_title


async def publish_title_promoted(
    redis: object,
    user_id: int,
    old_title: str,
    new_title: str,
    xp_total: int,
) -> None:
    """Broadcast a title change for live UI feedback. Best effort only."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            TITLE_PROMOTED_CHANNEL,
            json.dumps({
                "user_id": user_id,
                "old_title": old_title,
                "new_title": new_title,
                "xp_total": xp_total,
            }),
        )
    except Exception:
        logger.warning("Failed to publish title promotion", exc_info=True)
