"""
Pytest configuration and fixtures

No test touches PostgreSQL. Store classes are replaced by in-memory
subclasses that keep the production method signatures, and SQL-level
tests run against FakeDatabase, which records every query it receives.
"""
import os
import sys
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Set

import pytest

# Add the parent directory to the path so the backend modules import by name
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from achievements import AwardStore
from activities import ActivityStore
from aggregation import Aggregator
from errors import DuplicateAward, NotFound, StoreUnavailable
from goals import GoalStore, validate_goal
from models import (
    AchievementCategory, AchievementDefinition, ActivityDefinition, ActivityEntry,
    AwardedAchievement, Goal, PeriodType
)
from notifications import Notifier
from periods import localize, validate_window


UTC = timezone.utc

# Wednesday; the surrounding Sunday-based week is 9-15 March 2025
NOW = datetime(2025, 3, 12, 15, 30, tzinfo=UTC)


def at(year, month, day, hour=12, minute=0, second=0, microsecond=0, tz=UTC) -> datetime:
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)


# ============================================
# SQL-LEVEL FAKE
# ============================================

class FakeDatabase:
    """Stands in for database.Database; answers from per-method queues."""

    DEFAULTS = {
        "fetch": [],
        "fetch_one": None,
        "fetch_val": None,
        "execute": "UPDATE 0",
        "execute_returning": None,
    }

    def __init__(self):
        self.calls = []
        self.results: Dict[str, list] = {}

    def queue(self, method: str, *results):
        self.results.setdefault(method, []).extend(results)
        return self

    def queries(self, method: Optional[str] = None) -> List[str]:
        return [q for m, q, _ in self.calls if method is None or m == method]

    async def _answer(self, method, query, args):
        self.calls.append((method, " ".join(query.split()), args))
        pending = self.results.get(method)
        if pending:
            result = pending.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return self.DEFAULTS[method]

    async def fetch(self, query, *args):
        return await self._answer("fetch", query, args)

    async def fetch_one(self, query, *args):
        return await self._answer("fetch_one", query, args)

    async def fetch_val(self, query, *args):
        return await self._answer("fetch_val", query, args)

    async def execute(self, query, *args):
        return await self._answer("execute", query, args)

    async def execute_returning(self, query, *args):
        return await self._answer("execute_returning", query, args)


# ============================================
# IN-MEMORY STORES
# ============================================

class InMemoryLedger(Aggregator):
    """Aggregator over a list of (user_id, activity_id, count, occurred_at)."""

    def __init__(self, timezone_name: str = "UTC"):
        super().__init__(database=None, timezone=timezone_name)
        self.entries = []

    def add(self, user_id: int, activity_id: int, count: float, occurred_at: datetime):
        self.entries.append((user_id, activity_id, float(count), occurred_at))
        return self

    def add_days(self, user_id: int, activity_id: int, days: List[date], count: float = 1):
        for day in days:
            self.add(user_id, activity_id, count, at(day.year, day.month, day.day))
        return self

    async def sum_counts(self, user_id, activity_id, start, end, inclusive_end=False):
        validate_window(start, end)
        return float(sum(
            count for u, a, count, when in self.entries
            if u == user_id and a == activity_id and when >= start
            and (when <= end if inclusive_end else when < end)
        ))

    async def activity_totals(self, user_id):
        totals: Dict[int, float] = {}
        for u, a, count, _ in self.entries:
            if u == user_id:
                totals[a] = totals.get(a, 0.0) + count
        return totals

    async def activity_dates(self, user_id, activity_id=None):
        dates: Dict[int, Set[date]] = {}
        for u, a, _, when in self.entries:
            if u == user_id and (activity_id is None or a == activity_id):
                dates.setdefault(a, set()).add(localize(when, self.tz).date())
        return {a: sorted(days) for a, days in sorted(dates.items())}


class InMemoryAwardStore(AwardStore):
    """
    Award store with the unique constraint of user_achievements.

    ``failing`` definition ids raise StoreUnavailable on insert;
    ``preempted`` ids simulate a concurrent writer that got there first;
    ``orphaned`` ids fail as if their activity had just been deleted.
    """

    def __init__(self, catalog: List[AchievementDefinition]):
        super().__init__(database=None)
        self.catalog = list(catalog)
        self.awards: List[AwardedAchievement] = []
        self.failing: Set[int] = set()
        self.preempted: Set[int] = set()
        self.orphaned: Set[int] = set()
        self._next_id = 1

    async def get_catalog(self):
        return list(self.catalog)

    async def get_awarded(self, user_id):
        return [a for a in self.awards if a.user_id == user_id]

    def _store(self, user_id, definition_id, activity_id, message):
        record = AwardedAchievement(
            id=self._next_id,
            user_id=user_id,
            achievement_definition_id=definition_id,
            activity_id=activity_id,
            earned_at=NOW,
            custom_message=message,
        )
        self._next_id += 1
        self.awards.append(record)
        return record

    async def insert_award(self, user_id, definition_id, activity_id, message):
        if definition_id in self.failing:
            raise StoreUnavailable("connection reset")
        if definition_id in self.orphaned:
            raise NotFound("Activity", activity_id)
        if definition_id in self.preempted:
            self.preempted.discard(definition_id)
            self._store(user_id, definition_id, activity_id, "written by another request")
        key = (user_id, definition_id, activity_id or 0)
        if any((a.user_id, a.achievement_definition_id, a.activity_id or 0) == key for a in self.awards):
            raise DuplicateAward(f"Achievement {definition_id} already awarded to user {user_id}")
        return self._store(user_id, definition_id, activity_id, message)


class InMemoryActivityStore(ActivityStore):
    """Activity store that appends log entries to an InMemoryLedger."""

    def __init__(self, ledger: InMemoryLedger):
        super().__init__(database=None)
        self.ledger = ledger
        self.activities: Dict[int, ActivityDefinition] = {}
        self._next_entry = 1

    def add_activity(self, activity_id: int, owner_user_id: int, name: str, unit: str = "reps"):
        self.activities[activity_id] = ActivityDefinition(
            id=activity_id, owner_user_id=owner_user_id, display_name=name, unit=unit
        )
        return self

    async def get_activity(self, activity_id):
        return self.activities.get(activity_id)

    async def log_entry(self, user_id, activity_id, data):
        await self.require_activity(activity_id)
        occurred_at = self._localize(data.occurred_at) or NOW
        self.ledger.add(user_id, activity_id, data.count, occurred_at)
        entry = ActivityEntry(
            id=self._next_entry,
            activity_id=activity_id,
            owner_user_id=user_id,
            count=data.count,
            occurred_at=occurred_at,
            notes=data.notes,
        )
        self._next_entry += 1
        return entry


class InMemoryGoalStore(GoalStore):
    def __init__(self):
        super().__init__(database=None, activities=None)
        self.goals: Dict[int, Goal] = {}

    def add(self, goal: Goal) -> Goal:
        self.goals[goal.id] = goal
        return goal

    async def get_goal(self, goal_id):
        return self.goals.get(goal_id)

    async def list_goals(self, user_id, activity_id=None):
        return [
            g for g in self.goals.values()
            if g.owner_user_id == user_id and (activity_id is None or g.activity_id == activity_id)
        ]

    async def create_goal(self, user_id, data):
        validate_goal(data.target_count, data.start_date, data.end_date)
        goal = Goal(id=len(self.goals) + 1, owner_user_id=user_id, **data.model_dump())
        return self.add(goal)

    async def delete_goal(self, goal_id):
        return self.goals.pop(goal_id, None) is not None


class InMemoryNotifier(Notifier):
    def __init__(self):
        super().__init__(database=None)
        self.sent = []

    async def create_notification(self, user_id, notif_type, title, message=None, reference_id=None):
        notification = {
            "user_id": user_id,
            "type": notif_type.value,
            "title": title,
            "message": message,
            "reference_id": reference_id,
        }
        self.sent.append(notification)
        return notification


# ============================================
# FIXTURES
# ============================================

def definition(id, category, threshold, name, description="", icon="award"):
    return AchievementDefinition(
        id=id,
        category=category,
        threshold=threshold,
        name=name,
        description=description or name,
        icon=icon,
    )


@pytest.fixture
def catalog():
    return [
        definition(1, AchievementCategory.TOTAL_COUNT, 100, "Century", icon="medal"),
        definition(2, AchievementCategory.ACTIVITY_SPECIFIC, 50, "Dedicated", icon="bullseye"),
        definition(3, AchievementCategory.STREAK, 3, "Getting Started", icon="fire"),
        definition(4, AchievementCategory.ACTIVITY_VARIETY, 3, "Explorer", icon="compass"),
    ]


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def award_store(catalog):
    return InMemoryAwardStore(catalog)


@pytest.fixture
def goal_store():
    return InMemoryGoalStore()


@pytest.fixture
def activity_store(ledger):
    return InMemoryActivityStore(ledger)


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def fake_db():
    return FakeDatabase()


def make_goal(id=1, user_id=5, activity_id=2, target=100, period=PeriodType.MONTHLY,
              start_date=None, end_date=None) -> Goal:
    return Goal(
        id=id,
        owner_user_id=user_id,
        activity_id=activity_id,
        target_count=target,
        period_type=period,
        start_date=start_date,
        end_date=end_date,
        activity_name="Push-ups",
        unit="reps",
    )
