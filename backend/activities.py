"""
Activity Tracker - Activity Ledger
Activity types and the log entries recorded against them.
"""

from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from config import get_tracker_config
from database import Database, db
from errors import InvalidValue, NotFound
from models import (
    ActivityDefinition, ActivityDefinitionCreate,
    ActivityEntry, ActivityEntryCreate, ActivityEntryUpdate
)
from periods import localize


ACTIVITY_COLUMNS = """
    activity_type_id AS id,
    user_id AS owner_user_id,
    name AS display_name,
    unit,
    category,
    is_public,
    created_at
"""

ENTRY_COLUMNS = """
    log_id AS id,
    activity_type_id AS activity_id,
    user_id AS owner_user_id,
    count::FLOAT AS count,
    logged_at AS occurred_at,
    notes
"""


class ActivityStore:
    """CRUD over ``activity_types`` and ``activity_logs``."""

    def __init__(self, database: Database = db, timezone: Optional[str] = None):
        self.database = database
        self._timezone = timezone

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self._timezone or get_tracker_config().timezone)

    def _localize(self, moment: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are wall-clock time in the tracker timezone."""
        return localize(moment, self.tz) if moment is not None else None

    # ============================================
    # ACTIVITY TYPES
    # ============================================

    async def list_activities(self, user_id: int) -> List[ActivityDefinition]:
        """Activities the user owns plus public ones."""
        rows = await self.database.fetch(f"""
            SELECT {ACTIVITY_COLUMNS}
            FROM activity_types
            WHERE user_id = $1 OR is_public = true
            ORDER BY name
        """, user_id)
        return [ActivityDefinition(**row) for row in rows]

    async def get_activity(self, activity_id: int) -> Optional[ActivityDefinition]:
        row = await self.database.fetch_one(f"""
            SELECT {ACTIVITY_COLUMNS}
            FROM activity_types
            WHERE activity_type_id = $1
        """, activity_id)
        return ActivityDefinition(**row) if row else None

    async def require_activity(self, activity_id: int) -> ActivityDefinition:
        activity = await self.get_activity(activity_id)
        if not activity:
            raise NotFound("Activity", activity_id)
        return activity

    async def create_activity(
        self,
        user_id: int,
        data: ActivityDefinitionCreate
    ) -> ActivityDefinition:
        row = await self.database.execute_returning(f"""
            INSERT INTO activity_types (user_id, name, unit, category, is_public)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING {ACTIVITY_COLUMNS}
        """, user_id, data.display_name, data.unit, data.category, data.is_public)
        return ActivityDefinition(**row)

    async def delete_activity(self, activity_id: int) -> bool:
        """Delete an activity; its log entries go with it."""
        result = await self.database.execute(
            "DELETE FROM activity_types WHERE activity_type_id = $1", activity_id
        )
        return result == "DELETE 1"

    # ============================================
    # LOG ENTRIES
    # ============================================

    async def list_entries(
        self,
        user_id: int,
        activity_id: int,
        limit: int = 100,
        offset: int = 0
    ) -> List[ActivityEntry]:
        rows = await self.database.fetch(f"""
            SELECT {ENTRY_COLUMNS}
            FROM activity_logs
            WHERE user_id = $1 AND activity_type_id = $2
            ORDER BY logged_at DESC
            LIMIT $3 OFFSET $4
        """, user_id, activity_id, limit, offset)
        return [ActivityEntry(**row) for row in rows]

    async def get_entry(self, entry_id: int) -> Optional[ActivityEntry]:
        row = await self.database.fetch_one(f"""
            SELECT {ENTRY_COLUMNS}
            FROM activity_logs
            WHERE log_id = $1
        """, entry_id)
        return ActivityEntry(**row) if row else None

    async def log_entry(
        self,
        user_id: int,
        activity_id: int,
        data: ActivityEntryCreate
    ) -> ActivityEntry:
        """Append an entry; ``occurred_at`` defaults to now."""
        if data.count < 0:
            raise InvalidValue("count must not be negative", field="count")
        await self.require_activity(activity_id)

        row = await self.database.execute_returning(f"""
            INSERT INTO activity_logs (activity_type_id, user_id, count, logged_at, notes)
            VALUES ($1, $2, $3::FLOAT8, COALESCE($4, NOW()), $5)
            RETURNING {ENTRY_COLUMNS}
        """, activity_id, user_id, data.count, self._localize(data.occurred_at), data.notes)
        return ActivityEntry(**row)

    async def update_entry(self, entry_id: int, data: ActivityEntryUpdate) -> ActivityEntry:
        """Edit count, timestamp or notes; unset fields keep their value."""
        existing = await self.get_entry(entry_id)
        if not existing:
            raise NotFound("Log entry", entry_id)

        count = data.count if data.count is not None else existing.count
        occurred_at: datetime = self._localize(data.occurred_at) or existing.occurred_at
        notes = data.notes if data.notes is not None else existing.notes

        row = await self.database.execute_returning(f"""
            UPDATE activity_logs
            SET count = $1::FLOAT8, logged_at = $2, notes = $3
            WHERE log_id = $4
            RETURNING {ENTRY_COLUMNS}
        """, count, occurred_at, notes, entry_id)
        return ActivityEntry(**row)

    async def delete_entry(self, entry_id: int) -> bool:
        result = await self.database.execute(
            "DELETE FROM activity_logs WHERE log_id = $1", entry_id
        )
        return result == "DELETE 1"


# Global store instance
activity_store = ActivityStore()
