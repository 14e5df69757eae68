"""
Settings store, activity audit trail and notification log.
"""

from sqlalchemy import Column, Text, Integer, DateTime, JSON, Uuid
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class Setting(Base):
    """Key/value configuration row; ``value`` holds JSON text"""

    __tablename__ = "setting"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ActivityLog(Base):
    """Append-only audit of domain events"""

    __tablename__ = "activity_log"

    log_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_type = Column(Text, nullable=False)
    entity_id = Column(Text, nullable=False)
    action = Column(Text, nullable=False)
    by_user_id = Column(Uuid)
    by_role = Column(Text)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class NotificationLog(Base):
    """Record of a push notification attempt"""

    __tablename__ = "notification_log"

    notification_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
