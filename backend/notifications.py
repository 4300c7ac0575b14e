"""
Activity Tracker - Notifications
In-app notification records written when achievements are earned
"""

from typing import Dict, List, Optional, Sequence

from database import Database, db
from logger import logger
from models import AwardedAchievement, NotificationType


class Notifier:
    """Writes and reads rows in ``notifications``."""

    def __init__(self, database: Database = db):
        self.database = database

    async def create_notification(
        self,
        user_id: int,
        notif_type: NotificationType,
        title: str,
        message: Optional[str] = None,
        reference_id: Optional[int] = None
    ) -> Optional[Dict]:
        return await self.database.execute_returning("""
            INSERT INTO notifications (user_id, type, title, message, reference_id)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
        """, user_id, notif_type.value, title, message, reference_id)

    async def notify_achievements(
        self,
        user_id: int,
        achievements: Sequence[AwardedAchievement]
    ) -> List[Dict]:
        """One notification per newly earned achievement."""
        created = []
        for achievement in achievements:
            notification = await self.create_notification(
                user_id,
                NotificationType.ACHIEVEMENT,
                title=f"Achievement Unlocked: {achievement.name}!",
                message=achievement.custom_message or achievement.description,
                reference_id=achievement.id,
            )
            if notification:
                created.append(notification)
        if created:
            logger.info(f"Sent {len(created)} achievement notification(s) to user {user_id}")
        return created

    async def get_user_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 20
    ) -> List[Dict]:
        """Get user's notifications for display."""
        unread_filter = "AND read = false" if unread_only else ""
        return await self.database.fetch(f"""
            SELECT * FROM notifications
            WHERE user_id = $1 {unread_filter}
            ORDER BY created_at DESC
            LIMIT $2
        """, user_id, limit)

    async def mark_notification_read(self, notification_id: int) -> Optional[Dict]:
        """Mark notification as read by user."""
        return await self.database.execute_returning("""
            UPDATE notifications
            SET read = true
            WHERE notification_id = $1
            RETURNING *
        """, notification_id)


# Global notifier instance
notifier = Notifier()
