"""
Activity Tracker - Streak Detector
Longest and current runs of consecutive calendar days with activity.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from aggregation import Aggregator, aggregator
from models import StreakSummary
from periods import local_now


# ============================================
# PURE CALCULATIONS
# ============================================

def streak_runs(dates: Iterable[date]) -> List[List[date]]:
    """
    Split activity dates into runs of consecutive days.

    Dates are de-duplicated and sorted; each date is keyed by its ordinal
    minus its position in the sorted list. That key stays constant along a
    run of consecutive days and changes at every gap.

    Returns:
        Runs in ascending order, each run ascending
    """
    runs: Dict[int, List[date]] = {}
    for index, day in enumerate(sorted(set(dates))):
        runs.setdefault(day.toordinal() - index, []).append(day)
    return list(runs.values())


def longest_streak_from_dates(dates: Iterable[date]) -> int:
    return max((len(run) for run in streak_runs(dates)), default=0)


def current_streak_from_dates(dates: Iterable[date], today: date) -> int:
    """
    Length of the run still alive on ``today``.

    A run counts if it reaches today or yesterday (today's entry may not be
    logged yet). Days after ``today`` are ignored.
    """
    yesterday = today - timedelta(days=1)
    for run in reversed(streak_runs(d for d in dates if d <= today)):
        if run[-1] >= yesterday:
            return len(run)
        break
    return 0


# ============================================
# QUERIES
# ============================================

async def longest_streak(
    user_id: int,
    activity_id: int,
    source: Aggregator = aggregator
) -> int:
    """Longest streak for one activity; 0 if the user never logged it."""
    dates = await source.activity_dates(user_id, activity_id)
    return longest_streak_from_dates(dates.get(activity_id, []))


async def streaks_by_activity(user_id: int, source: Aggregator = aggregator) -> Dict[int, int]:
    """Longest streak for every activity the user has logged."""
    dates = await source.activity_dates(user_id)
    return {
        activity_id: longest_streak_from_dates(days)
        for activity_id, days in dates.items()
    }


async def get_streak_summary(
    user_id: int,
    activity_id: int,
    now: Optional[datetime] = None,
    source: Aggregator = aggregator
) -> StreakSummary:
    dates = (await source.activity_dates(user_id, activity_id)).get(activity_id, [])
    today = local_now(source.tz, now).date()

    return StreakSummary(
        activity_id=activity_id,
        longest_streak=longest_streak_from_dates(dates),
        current_streak=current_streak_from_dates(dates, today),
    )
