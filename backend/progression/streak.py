"""Daily activity and streak tracking."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import utcnow
from backend.errors import LearnerNotFound
from backend.models.daily_activity import DailyActivity
from backend.models.learner import Learner

logger = logging.getLogger(__name__)

# How far back to look when counting a streak
STREAK_LOOKBACK_DAYS = 100


@dataclass
class StreakData:
    current_streak: int
    longest_streak: int
    last_active_date: datetime | None
    today_completed: bool


class StreakTracker:
    """Records learning activity per day and keeps streak counters on the learner."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record_activity(self, learner_id: int, today: date | None = None) -> StreakData:
        """Record one learned word for today and recompute the streak."""
        now = utcnow()
        today = today or now.date()

        learner = await self.session.get(Learner, learner_id)
        if learner is None:
            raise LearnerNotFound(learner_id)

        activity = await self._activity_on(learner_id, today)
        if activity is None:
            self.session.add(DailyActivity(learner_id=learner_id, activity_date=today, words_learned=1))
        else:
            activity.words_learned += 1
        await self.session.flush()

        current = await self.calculate_current_streak(learner_id, today)
        learner.current_streak = current
        learner.longest_streak = max(current, learner.longest_streak or 0)
        learner.last_active_date = now
        await self.session.commit()

        logger.debug("Learner %d streak: %d (longest %d)", learner_id, current, learner.longest_streak)
        return StreakData(
            current_streak=current,
            longest_streak=learner.longest_streak,
            last_active_date=now,
            today_completed=True,
        )

    async def calculate_current_streak(self, learner_id: int, today: date | None = None) -> int:
        """Count consecutive active days ending today, or yesterday if today is empty."""
        today = today or utcnow().date()
        stmt = (
            select(DailyActivity.activity_date)
            .where(DailyActivity.learner_id == learner_id)
            .order_by(DailyActivity.activity_date.desc())
            .limit(STREAK_LOOKBACK_DAYS)
        )
        dates = list((await self.session.execute(stmt)).scalars().all())
        if not dates:
            return 0

        expected = today if dates[0] == today else today - timedelta(days=1)
        streak = 0
        for activity_date in dates:
            if activity_date != expected:
                break
            streak += 1
            expected -= timedelta(days=1)
        return streak

    async def get_streak(self, learner_id: int, today: date | None = None) -> StreakData:
        today = today or utcnow().date()
        learner = await self.session.get(Learner, learner_id)
        if learner is None:
            raise LearnerNotFound(learner_id)
        activity = await self._activity_on(learner_id, today)
        return StreakData(
            current_streak=learner.current_streak,
            longest_streak=learner.longest_streak,
            last_active_date=learner.last_active_date,
            today_completed=activity is not None,
        )

    async def reset_if_lapsed(self, learner_id: int, today: date | None = None) -> bool:
        """Zero the streak if the learner missed yesterday. Returns True if reset."""
        today = today or utcnow().date()
        learner = await self.session.get(Learner, learner_id)
        if learner is None:
            raise LearnerNotFound(learner_id)
        if learner.last_active_date is None or learner.current_streak == 0:
            return False
        if learner.last_active_date.date() >= today - timedelta(days=1):
            return False
        learner.current_streak = 0
        await self.session.commit()
        logger.info("Reset lapsed streak for learner %d", learner_id)
        return True

    async def _activity_on(self, learner_id: int, day: date) -> DailyActivity | None:
        stmt = select(DailyActivity).where(
            and_(DailyActivity.learner_id == learner_id, DailyActivity.activity_date == day)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()
