from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import logging
import uuid

from adapters import push_adapter
from domain.models import NotificationLog, atomic
from repositories import NotificationLogRepository

logger = logging.getLogger("mealpass.notifications")


class NotificationService:
    @staticmethod
    def notify(
        db: Session,
        user_id: uuid.UUID,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Best-effort push notification.

        Must only be called after the domain transaction has committed. Any
        failure is logged and swallowed so it can never undo domain state.
        """
        payload = {k: str(v) for k, v in (data or {}).items()}
        try:
            success, failure = push_adapter.send(str(user_id), title, body, payload)
            with atomic(db):
                NotificationLogRepository(db).create(
                    NotificationLog(
                        user_id=user_id,
                        title=title,
                        body=body,
                        data=payload,
                        success_count=success,
                        failure_count=failure,
                    )
                )
        except Exception:
            logger.exception("Notification to user %s failed", user_id)
