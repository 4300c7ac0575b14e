"""
Activity Tracker - Goals Module
Activity goals and their progress over explicit or period-derived windows
"""

import math
from datetime import date, datetime, tzinfo
from typing import List, Optional, Tuple

from activities import ActivityStore, activity_store
from aggregation import Aggregator, aggregator
from database import Database, db
from errors import InvalidValue, InvalidWindow, NotFound
from models import Goal, GoalCreate, GoalProgress, GoalUpdate
from periods import inclusive_window, period_inclusive_window


GOAL_COLUMNS = """
    g.goal_id AS id,
    g.user_id AS owner_user_id,
    g.activity_type_id AS activity_id,
    g.target_count::FLOAT AS target_count,
    g.period_type,
    g.start_date,
    g.end_date,
    a.name AS activity_name,
    a.unit
"""


def validate_goal(target_count: float, start_date: Optional[date], end_date: Optional[date]) -> None:
    """Reject negative targets and half-specified or reversed date windows."""
    if target_count < 0:
        raise InvalidValue("target_count must not be negative", field="target_count")
    if (start_date is None) != (end_date is None):
        raise InvalidWindow(
            start_date, end_date,
            "start_date and end_date must be given together"
        )
    if start_date is not None and start_date > end_date:
        raise InvalidWindow(start_date, end_date)


# ============================================
# GOAL OPERATIONS
# ============================================

class GoalStore:
    """CRUD over ``activity_goals``."""

    def __init__(self, database: Database = db, activities: ActivityStore = activity_store):
        self.database = database
        self.activities = activities

    async def list_goals(self, user_id: int, activity_id: Optional[int] = None) -> List[Goal]:
        params = [user_id]
        activity_filter = ""
        if activity_id is not None:
            activity_filter = "AND g.activity_type_id = $2"
            params.append(activity_id)

        rows = await self.database.fetch(f"""
            SELECT {GOAL_COLUMNS}
            FROM activity_goals g
            JOIN activity_types a ON g.activity_type_id = a.activity_type_id
            WHERE g.user_id = $1 {activity_filter}
            ORDER BY g.start_date DESC NULLS LAST, g.goal_id DESC
        """, *params)
        return [Goal(**row) for row in rows]

    async def get_goal(self, goal_id: int) -> Optional[Goal]:
        row = await self.database.fetch_one(f"""
            SELECT {GOAL_COLUMNS}
            FROM activity_goals g
            JOIN activity_types a ON g.activity_type_id = a.activity_type_id
            WHERE g.goal_id = $1
        """, goal_id)
        return Goal(**row) if row else None

    async def require_goal(self, goal_id: int) -> Goal:
        goal = await self.get_goal(goal_id)
        if not goal:
            raise NotFound("Goal", goal_id)
        return goal

    async def create_goal(self, user_id: int, data: GoalCreate) -> Goal:
        validate_goal(data.target_count, data.start_date, data.end_date)
        await self.activities.require_activity(data.activity_id)

        created = await self.database.execute_returning("""
            INSERT INTO activity_goals
                (user_id, activity_type_id, target_count, period_type, start_date, end_date)
            VALUES ($1, $2, $3::FLOAT8, $4, $5, $6)
            RETURNING goal_id
        """, user_id, data.activity_id, data.target_count, data.period_type.value,
            data.start_date, data.end_date)
        return await self.require_goal(created["goal_id"])

    async def update_goal(self, goal_id: int, data: GoalUpdate) -> Goal:
        """Apply the fields present in ``data``; the merged goal must still be valid."""
        changes = data.model_dump(exclude_unset=True)
        # Dates may be cleared to fall back to the period; these may not
        for required in ("target_count", "period_type"):
            if required in changes and changes[required] is None:
                raise InvalidValue(f"{required} cannot be cleared", field=required)

        existing = await self.require_goal(goal_id)
        merged = existing.model_copy(update=changes)
        validate_goal(merged.target_count, merged.start_date, merged.end_date)

        await self.database.execute("""
            UPDATE activity_goals
            SET target_count = $1::FLOAT8, period_type = $2, start_date = $3, end_date = $4
            WHERE goal_id = $5
        """, merged.target_count, merged.period_type.value,
            merged.start_date, merged.end_date, goal_id)
        return await self.require_goal(goal_id)

    async def delete_goal(self, goal_id: int) -> bool:
        result = await self.database.execute(
            "DELETE FROM activity_goals WHERE goal_id = $1", goal_id
        )
        return result == "DELETE 1"


# Global store instance
goal_store = GoalStore()


# ============================================
# PROGRESS
# ============================================

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_goal_window(
    goal: Goal,
    tz: tzinfo,
    now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """
    Inclusive ``[start, end]`` window for a goal.

    Explicit dates cover whole days, end date included. Goals without
    dates use the daily / weekly (Sunday-Saturday) / monthly / yearly
    period that contains ``now``.
    """
    if goal.start_date and goal.end_date:
        return inclusive_window(goal.start_date, goal.end_date, tz)
    return period_inclusive_window(goal.period_type, tz, now)


def compute_progress(
    goal: Goal,
    current_count: float,
    window: Tuple[datetime, datetime]
) -> GoalProgress:
    """
    Derive percent, remaining and completion from the current total.

    A zero target is complete from the start.
    """
    target = goal.target_count
    if target == 0:
        percent = 100
    else:
        percent = min(100, round_half_up(current_count / target * 100))

    return GoalProgress(
        goal=goal,
        current_count=current_count,
        target_count=target,
        progress_percent=percent,
        remaining=max(0.0, target - current_count),
        completed=current_count >= target,
        window_start=window[0],
        window_end=window[1],
    )


async def get_goal_progress(
    goal_id: int,
    now: Optional[datetime] = None,
    store: GoalStore = goal_store,
    source: Aggregator = aggregator
) -> GoalProgress:
    """Progress of one goal against the ledger as it is right now."""
    goal = await store.require_goal(goal_id)
    window = resolve_goal_window(goal, source.tz, now)

    current = await source.sum_counts(
        goal.owner_user_id, goal.activity_id, *window, inclusive_end=True
    )
    return compute_progress(goal, current, window)
