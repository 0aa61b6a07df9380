"""Daily streak tracking with bonus XP every seventh consecutive day."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from strive.config import get_settings
from strive.db.models import User
from strive.progression.errors import UserNotFoundError
from strive.progression.sources import XPSource, streak_bonus
from strive.progression.xp_service import apply_xp, publish_title_promoted, unit_of_work

logger = logging.getLogger(__name__)

SAME_DAY = "same_day"
CONSECUTIVE = "consecutive"
RESET = "reset"


@dataclass(frozen=True)
class StreakUpdate:
    """Outcome of touch_streak."""

    streak_count: int
    last_active_date: date | None
    transition: str
    bonus_xp: int = 0
    # Title after the bonus award; None when no bonus fired.
    title: str | None = None


def local_today(now: datetime | None = None) -> date:
    """Today's calendar date in the configured server timezone."""
    tz = ZoneInfo(get_settings().timezone)
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(tz).date()


def next_streak(last_active_date: date | None, streak_count: int, today: date) -> tuple[int, str]:
    """Decide the next streak count by calendar date alone.

    A last_active_date after today (timezone change, clock skew) is treated
    as the same day so the streak never moves backwards.
    """
    if last_active_date is not None and last_active_date >= today:
        return streak_count, SAME_DAY
    if last_active_date == today - timedelta(days=1):
        return streak_count + 1, CONSECUTIVE
    return 1, RESET


async def touch_streak(
    db: AsyncSession,
    user_id: int,
    *,
    today: date | None = None,
    redis: object = None,
) -> StreakUpdate:
    """Record a qualifying activity for today. Idempotent within a calendar day.

    The streak write and any bonus award commit together.
    """
    if today is None:
        today = local_today()

    promoted: tuple[str, str, int] | None = None
    bonus_title: str | None = None
    async with unit_of_work(db):
        result = await db.execute(
            select(User.streak_count, User.last_active_date)
            .where(User.id == user_id)
            .with_for_update()
        )
        row = result.one_or_none()
        if row is None:
            raise UserNotFoundError(user_id)

        count, transition = next_streak(row.last_active_date, row.streak_count, today)
        if transition == SAME_DAY:
            return StreakUpdate(row.streak_count, row.last_active_date, transition)

        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(streak_count=count, last_active_date=today)
        )

        bonus = streak_bonus(count)
        if bonus:
            old_title, new_title, xp_total = await apply_xp(
                db, user_id, bonus, XPSource.STREAK_ACHIEVED,
                meta={"streak_count": count},
            )
            bonus_title = new_title
            if new_title != old_title:
                promoted = (old_title, new_title, xp_total)

    if bonus:
        logger.info("Streak bonus: user=%d streak=%d xp=%d", user_id, count, bonus)
    if promoted is not None:
        await publish_title_promoted(redis, user_id, *promoted)

    return StreakUpdate(count, today, transition, bonus, bonus_title)


def streak_calendar(
    last_active_date: date | None,
    streak_count: int,
    today: date,
    days: int = 30,
) -> list[dict[str, object]]:
    """The last `days` calendar days, flagging those inside the latest streak run."""
    run_start = None
    if last_active_date is not None and streak_count > 0:
        run_start = last_active_date - timedelta(days=streak_count - 1)

    calendar = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        is_active = run_start is not None and run_start <= day <= last_active_date  # type: ignore[operator]
        calendar.append({"date": day, "is_active": is_active})
    return calendar
