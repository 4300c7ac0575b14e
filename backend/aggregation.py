"""
Activity Tracker - Aggregation Queries
Sums of logged counts over time windows, lifetime totals and distinct
activity dates, shared by stats, streaks, achievements and goals.
"""

import asyncio
from datetime import date, datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from config import get_tracker_config
from database import Database, db
from errors import NotFound
from models import ActivityStats, PeriodType
from periods import period_window, validate_window


STATS_PERIODS = {
    "today": PeriodType.DAILY,
    "week": PeriodType.WEEKLY,
    "month": PeriodType.MONTHLY,
    "year": PeriodType.YEARLY,
}


class Aggregator:
    """Read-only queries over ``activity_logs``."""

    def __init__(self, database: Database = db, timezone: Optional[str] = None):
        self.database = database
        self._timezone = timezone

    @property
    def timezone(self) -> str:
        return self._timezone or get_tracker_config().timezone

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    async def sum_counts(
        self,
        user_id: int,
        activity_id: int,
        start: datetime,
        end: datetime,
        inclusive_end: bool = False
    ) -> float:
        """
        Sum ``count`` for one user and activity between ``start`` and ``end``.

        The window is half-open ``[start, end)`` unless ``inclusive_end`` is
        set, which goal progress uses for its ``[start, end]`` windows.
        Returns 0 when nothing matches.
        """
        validate_window(start, end)
        end_operator = "<=" if inclusive_end else "<"

        total = await self.database.fetch_val(f"""
            SELECT COALESCE(SUM(count), 0)
            FROM activity_logs
            WHERE user_id = $1
              AND activity_type_id = $2
              AND logged_at >= $3
              AND logged_at {end_operator} $4
        """, user_id, activity_id, start, end)

        return float(total or 0)

    async def activity_totals(self, user_id: int) -> Dict[int, float]:
        """Lifetime total per activity, for activities with at least one entry."""
        rows = await self.database.fetch("""
            SELECT activity_type_id, COALESCE(SUM(count), 0) AS total
            FROM activity_logs
            WHERE user_id = $1
            GROUP BY activity_type_id
        """, user_id)

        return {row["activity_type_id"]: float(row["total"]) for row in rows}

    async def activity_dates(
        self,
        user_id: int,
        activity_id: Optional[int] = None
    ) -> Dict[int, List[date]]:
        """
        Distinct calendar dates with at least one entry, per activity, ascending.

        Timestamps are truncated in the configured tracker timezone.
        """
        params = [user_id, self.timezone]
        activity_filter = ""
        if activity_id is not None:
            activity_filter = "AND activity_type_id = $3"
            params.append(activity_id)

        rows = await self.database.fetch(f"""
            SELECT
                activity_type_id,
                DATE(logged_at AT TIME ZONE $2) AS activity_date
            FROM activity_logs
            WHERE user_id = $1 {activity_filter}
            GROUP BY 1, 2
            ORDER BY 1, 2
        """, *params)

        dates: Dict[int, List[date]] = {}
        for row in rows:
            dates.setdefault(row["activity_type_id"], []).append(row["activity_date"])
        return dates

    async def get_stats(
        self,
        user_id: int,
        activity_id: int,
        now: Optional[datetime] = None
    ) -> ActivityStats:
        """Today / this week / this month / this year totals for one activity."""
        activity = await self.database.fetch_one(
            "SELECT unit FROM activity_types WHERE activity_type_id = $1",
            activity_id
        )
        if not activity:
            raise NotFound("Activity", activity_id)

        tz = self.tz
        names = list(STATS_PERIODS)
        totals = await asyncio.gather(*[
            self.sum_counts(user_id, activity_id, *period_window(STATS_PERIODS[name], tz, now))
            for name in names
        ])

        return ActivityStats(
            unit=activity.get("unit") or "units",
            **dict(zip(names, totals))
        )


# Global aggregator instance
aggregator = Aggregator()


async def sum_counts(user_id: int, activity_id: int, start: datetime, end: datetime) -> float:
    """Half-open ``[start, end)`` sum using the shared aggregator."""
    return await aggregator.sum_counts(user_id, activity_id, start, end)


async def get_activity_stats(
    user_id: int,
    activity_id: int,
    now: Optional[datetime] = None
) -> ActivityStats:
    return await aggregator.get_stats(user_id, activity_id, now)
