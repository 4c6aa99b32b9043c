# src/reinforcement/consistency_tracker.py
"""Consecutive-active-week tracking for the consistency multiplier."""
from datetime import date, datetime, timedelta

from src.reinforcement.models import ConsistencyStreak


class ConsistencyTracker:
    """Tracks weekly activity and derives the consistency multiplier.

    The streak counts consecutive completed weeks with qualifying activity,
    ending with the week before the evaluation time. A single idle week
    breaks the chain, which resets the multiplier to 1.00.

    Multiplier: 1 + step × min(consecutive_active_weeks, max_weeks)
    (defaults: 1 + 0.1 × min(weeks, 12), so at most 2.20).
    """

    def __init__(self, step: float = 0.1, max_weeks: int = 12):
        """Initialize the tracker.

        Args:
            step: Multiplier increment per active week.
            max_weeks: Weeks after which the multiplier stops growing.
        """
        self._step = step
        self._max_weeks = max_weeks

    @staticmethod
    def week_start(timestamp: datetime | date) -> date:
        """Monday of the ISO week containing timestamp."""
        day = timestamp.date() if isinstance(timestamp, datetime) else timestamp
        return day - timedelta(days=day.weekday())

    def record_activity(self, streak: ConsistencyStreak, timestamp: datetime) -> None:
        """Mark the week containing timestamp as active."""
        streak.active_weeks.add(self.week_start(timestamp))

    def consecutive_active_weeks(self, streak: ConsistencyStreak, as_of: datetime) -> int:
        """Count consecutive active weeks immediately before as_of's week."""
        week = self.week_start(as_of) - timedelta(weeks=1)
        count = 0
        while week in streak.active_weeks:
            count += 1
            week -= timedelta(weeks=1)
        return count

    def multiplier(self, streak: ConsistencyStreak, as_of: datetime) -> float:
        weeks = min(self.consecutive_active_weeks(streak, as_of), self._max_weeks)
        return 1.0 + self._step * weeks

    def prune(self, streak: ConsistencyStreak, as_of: datetime) -> None:
        """Drop weeks too old to affect the capped multiplier."""
        cutoff = self.week_start(as_of) - timedelta(weeks=self._max_weeks + 1)
        streak.active_weeks = {w for w in streak.active_weeks if w >= cutoff}
