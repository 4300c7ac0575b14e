"""
Activity Tracker - Achievement System
Rule-based achievement evaluation and award-once persistence
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple, Type

import asyncpg

from aggregation import Aggregator, aggregator
from config import get_tracker_config
from database import Database, db
from errors import AwardBatchError, DuplicateAward, NotFound, StoreUnavailable, TrackerError
from logger import logger
from models import AchievementCategory, AchievementDefinition, AwardedAchievement
from streaks import streaks_by_activity


# ============================================
# ACHIEVEMENT DEFINITIONS
# ============================================

# Seeded into achievement_types on startup, matched by name
ACHIEVEMENT_DEFINITIONS = [
    {
        "name": "First Steps",
        "description": "Log a total of 10 across all activities",
        "icon": "shoe-prints",
        "category": "total_count",
        "threshold": 10,
    },
    {
        "name": "Century",
        "description": "Log a total of 100 across all activities",
        "icon": "medal",
        "category": "total_count",
        "threshold": 100,
    },
    {
        "name": "Thousand Club",
        "description": "Log a total of 1000 across all activities",
        "icon": "trophy",
        "category": "total_count",
        "threshold": 1000,
    },
    {
        "name": "Dedicated",
        "description": "Reach 50 in a single activity",
        "icon": "bullseye",
        "category": "activity_specific",
        "threshold": 50,
    },
    {
        "name": "Specialist",
        "description": "Reach 500 in a single activity",
        "icon": "star",
        "category": "activity_specific",
        "threshold": 500,
    },
    {
        "name": "Getting Started",
        "description": "Log an activity 3 days in a row",
        "icon": "fire",
        "category": "streak",
        "threshold": 3,
    },
    {
        "name": "Week Warrior",
        "description": "Log an activity 7 days in a row",
        "icon": "fire-alt",
        "category": "streak",
        "threshold": 7,
    },
    {
        "name": "Month Master",
        "description": "Log an activity 30 days in a row",
        "icon": "calendar-check",
        "category": "streak",
        "threshold": 30,
    },
    {
        "name": "Explorer",
        "description": "Track 3 different activities",
        "icon": "compass",
        "category": "activity_variety",
        "threshold": 3,
    },
    {
        "name": "All-Rounder",
        "description": "Track 5 different activities",
        "icon": "layer-group",
        "category": "activity_variety",
        "threshold": 5,
    },
]


def format_count(value: float) -> str:
    """12.0 -> '12', 2.50 -> '2.5'."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


# ============================================
# RULES
# ============================================

@dataclass
class ActivitySnapshot:
    """A user's lifetime aggregates at evaluation time."""

    totals: Dict[int, float] = field(default_factory=dict)
    streaks: Dict[int, int] = field(default_factory=dict)

    @property
    def grand_total(self) -> float:
        return sum(self.totals.values())

    @property
    def best_streak(self) -> int:
        return max(self.streaks.values(), default=0)

    @property
    def variety(self) -> int:
        return len(self.totals)


@dataclass
class Qualification:
    metric: float
    message: str


@dataclass
class AchievementRule(ABC):
    """Base rule; one subclass per achievement category."""

    threshold: float

    def award_activity_id(self, triggering_activity_id: Optional[int]) -> Optional[int]:
        """Activity the award is bound to. Only activity-specific awards have one."""
        return None

    @abstractmethod
    def check(
        self,
        snapshot: ActivitySnapshot,
        triggering_activity_id: Optional[int]
    ) -> Optional[Qualification]:
        """Qualification if the snapshot meets the threshold, else None."""


class TotalCountRule(AchievementRule):
    def check(self, snapshot, triggering_activity_id):
        total = snapshot.grand_total
        if total >= self.threshold:
            return Qualification(total, f"Total of {format_count(total)} across all activities")
        return None


class ActivitySpecificRule(AchievementRule):
    def award_activity_id(self, triggering_activity_id):
        return triggering_activity_id

    def check(self, snapshot, triggering_activity_id):
        # Only the activity that was just logged is considered
        if triggering_activity_id is None:
            return None
        total = snapshot.totals.get(triggering_activity_id, 0)
        if total >= self.threshold:
            return Qualification(total, f"Reached {format_count(total)} for this activity")
        return None


class StreakRule(AchievementRule):
    def check(self, snapshot, triggering_activity_id):
        streak = snapshot.best_streak
        if streak >= self.threshold:
            return Qualification(streak, f"Maintained a streak of {streak} consecutive days")
        return None


class ActivityVarietyRule(AchievementRule):
    def check(self, snapshot, triggering_activity_id):
        variety = snapshot.variety
        if variety >= self.threshold:
            return Qualification(variety, f"Tracking {variety} different activities")
        return None


RULES: Dict[AchievementCategory, Type[AchievementRule]] = {
    AchievementCategory.TOTAL_COUNT: TotalCountRule,
    AchievementCategory.ACTIVITY_SPECIFIC: ActivitySpecificRule,
    AchievementCategory.STREAK: StreakRule,
    AchievementCategory.ACTIVITY_VARIETY: ActivityVarietyRule,
}


def build_rule(definition: AchievementDefinition) -> AchievementRule:
    return RULES[definition.category](definition.threshold)


# ============================================
# PERSISTENCE
# ============================================

AWARD_COLUMNS = """
    ua.user_achievement_id AS id,
    ua.user_id,
    ua.achievement_type_id AS achievement_definition_id,
    ua.activity_type_id AS activity_id,
    ua.earned_at,
    ua.custom_message
"""


class AwardStore:
    """Catalog reads and award writes over ``achievement_types`` / ``user_achievements``."""

    def __init__(self, database: Database = db):
        self.database = database

    async def get_catalog(self) -> List[AchievementDefinition]:
        rows = await self.database.fetch("""
            SELECT
                achievement_type_id AS id,
                category,
                threshold::FLOAT AS threshold,
                name,
                description,
                icon
            FROM achievement_types
            ORDER BY category, threshold
        """)
        return [AchievementDefinition(**row) for row in rows]

    async def get_awarded(self, user_id: int) -> List[AwardedAchievement]:
        """User's achievements, newest first, with definition display fields."""
        rows = await self.database.fetch(f"""
            SELECT {AWARD_COLUMNS}, ad.name, ad.description, ad.icon
            FROM user_achievements ua
            JOIN achievement_types ad ON ua.achievement_type_id = ad.achievement_type_id
            WHERE ua.user_id = $1
            ORDER BY ua.earned_at DESC
        """, user_id)
        return [AwardedAchievement(**row) for row in rows]

    async def insert_award(
        self,
        user_id: int,
        definition_id: int,
        activity_id: Optional[int],
        message: Optional[str]
    ) -> AwardedAchievement:
        """
        Persist one award.

        Raises:
            DuplicateAward: the unique index already holds this award
            NotFound: the activity was deleted while evaluating
            StoreUnavailable: any other database rejection
        """
        try:
            row = await self.database.execute_returning(f"""
                INSERT INTO user_achievements AS ua
                    (user_id, achievement_type_id, activity_type_id, earned_at, custom_message)
                VALUES ($1, $2, $3, NOW(), $4)
                ON CONFLICT DO NOTHING
                RETURNING {AWARD_COLUMNS}
            """, user_id, definition_id, activity_id, message)
        except asyncpg.UniqueViolationError as e:
            raise DuplicateAward(f"Achievement {definition_id} already awarded to user {user_id}") from e
        except asyncpg.ForeignKeyViolationError as e:
            raise NotFound("Activity", activity_id) from e
        except asyncpg.PostgresError as e:
            raise StoreUnavailable(f"Could not save achievement {definition_id}: {e}") from e

        if not row:
            raise DuplicateAward(f"Achievement {definition_id} already awarded to user {user_id}")
        return AwardedAchievement(**row)

    async def seed_catalog(self, definitions: Sequence[dict] = ACHIEVEMENT_DEFINITIONS) -> int:
        """Insert missing definitions. Returns count of inserted."""
        inserted = 0
        for data in definitions:
            row = await self.database.execute_returning("""
                INSERT INTO achievement_types (name, description, icon, category, threshold)
                VALUES ($1, $2, $3, $4, $5::FLOAT8)
                ON CONFLICT (name) DO NOTHING
                RETURNING achievement_type_id
            """, data["name"], data["description"], data["icon"],
                data["category"], data["threshold"])
            if row:
                inserted += 1
        return inserted


# Global store instance
award_store = AwardStore()


# ============================================
# EVALUATOR
# ============================================

AwardKey = Tuple[int, Optional[int]]


class AchievementEvaluator:
    """Checks a user's aggregates against an injected catalog and awards what is new."""

    def __init__(
        self,
        catalog: Sequence[AchievementDefinition],
        store: AwardStore = award_store,
        source: Aggregator = aggregator
    ):
        self.catalog = list(catalog)
        self.definitions = {definition.id: definition for definition in self.catalog}
        self.rules = {definition.id: build_rule(definition) for definition in self.catalog}
        self.store = store
        self.source = source

    def _key(self, definition_id: int, activity_id: Optional[int]) -> AwardKey:
        definition = self.definitions.get(definition_id)
        if definition and definition.category == AchievementCategory.ACTIVITY_SPECIFIC:
            return definition_id, activity_id
        return definition_id, None

    async def snapshot(self, user_id: int) -> ActivitySnapshot:
        totals, streaks = await asyncio.gather(
            self.source.activity_totals(user_id),
            streaks_by_activity(user_id, self.source),
        )
        return ActivitySnapshot(totals=totals, streaks=streaks)

    def pending(
        self,
        snapshot: ActivitySnapshot,
        held: Set[AwardKey],
        triggering_activity_id: Optional[int] = None
    ) -> List[Tuple[AchievementDefinition, Optional[int], Qualification]]:
        """Definitions satisfied by ``snapshot`` that are not in ``held``."""
        due = []
        for definition in self.catalog:
            rule = self.rules[definition.id]
            activity_id = rule.award_activity_id(triggering_activity_id)
            if (definition.id, activity_id) in held:
                continue
            qualification = rule.check(snapshot, triggering_activity_id)
            if qualification:
                due.append((definition, activity_id, qualification))
        return due

    async def evaluate(
        self,
        user_id: int,
        triggering_activity_id: Optional[int] = None
    ) -> List[AwardedAchievement]:
        """
        Award every newly satisfied achievement.

        Each award is written on its own. Duplicates from concurrent
        evaluations are skipped; if some writes fail the others stay
        written and AwardBatchError carries them.

        Returns:
            Newly awarded achievements with name, description and icon
        """
        existing = await self.store.get_awarded(user_id)
        held = {self._key(a.achievement_definition_id, a.activity_id) for a in existing}
        snapshot = await self.snapshot(user_id)

        awarded: List[AwardedAchievement] = []
        failures: List[TrackerError] = []

        for definition, activity_id, qualification in self.pending(snapshot, held, triggering_activity_id):
            try:
                record = await self.store.insert_award(
                    user_id, definition.id, activity_id, qualification.message
                )
            except DuplicateAward:
                logger.info(f"Achievement '{definition.name}' already awarded to user {user_id}")
                continue
            except TrackerError as e:
                logger.error(f"Could not award '{definition.name}' to user {user_id}: {e}")
                failures.append(e)
                continue

            awarded.append(record.model_copy(update={
                "name": definition.name,
                "description": definition.description,
                "icon": definition.icon,
            }))
            logger.info(f"User {user_id} earned '{definition.name}': {qualification.message}")

        if failures:
            raise AwardBatchError(awarded, failures)
        return awarded


# ============================================
# ENTRY POINTS
# ============================================

async def get_achievement_types(store: AwardStore = award_store) -> List[AchievementDefinition]:
    return await store.get_catalog()


async def get_user_achievements(user_id: int, store: AwardStore = award_store) -> List[AwardedAchievement]:
    return await store.get_awarded(user_id)


async def evaluate_achievements(
    user_id: int,
    triggering_activity_id: Optional[int] = None,
    store: AwardStore = award_store,
    source: Aggregator = aggregator
) -> List[AwardedAchievement]:
    """Load the catalog and evaluate one user against it."""
    catalog = await store.get_catalog()
    evaluator = AchievementEvaluator(catalog, store=store, source=source)
    return await evaluator.evaluate(user_id, triggering_activity_id)


async def initialize_achievements(store: AwardStore = award_store) -> dict:
    """
    Seed the default catalog.
    Call this on server startup, after the tables exist.
    """
    inserted = 0
    if get_tracker_config().seed_default_achievements:
        inserted = await store.seed_catalog()

    return {
        "definitions_seeded": inserted,
        "message": f"Achievement system initialized. {inserted} new definitions added."
    }
