"""
Activity and Notification Repositories - append-only audit rows
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import ActivityLog, NotificationLog


class ActivityLogRepository(BaseRepository[ActivityLog]):
    """Repository for activity log rows"""

    def __init__(self, db: Session):
        super().__init__(db, ActivityLog)

    def get_by_id(self, log_id: UUID) -> Optional[ActivityLog]:
        return self.db.query(ActivityLog).filter(ActivityLog.log_id == log_id).first()

    def write(
        self,
        entity_type: str,
        entity_id,
        action: str,
        by_role: str = "system",
        by_user_id: Optional[UUID] = None,
        meta: Optional[dict] = None,
    ) -> ActivityLog:
        """Append one activity row"""
        return self.create(
            ActivityLog(
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                by_role=by_role,
                by_user_id=by_user_id,
                meta=meta or {},
            )
        )

    def list_for_entity(self, entity_type: str, entity_id) -> List[ActivityLog]:
        return (
            self.db.query(ActivityLog)
            .filter(
                ActivityLog.entity_type == entity_type,
                ActivityLog.entity_id == str(entity_id),
            )
            .order_by(ActivityLog.created_at)
            .all()
        )


class NotificationLogRepository(BaseRepository[NotificationLog]):
    """Repository for notification attempts"""

    def __init__(self, db: Session):
        super().__init__(db, NotificationLog)

    def get_by_id(self, notification_id: UUID) -> Optional[NotificationLog]:
        return (
            self.db.query(NotificationLog)
            .filter(NotificationLog.notification_id == notification_id)
            .first()
        )
