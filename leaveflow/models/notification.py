"""
Notification model (in-app and email outbox)
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.sql import text
import enum
from leaveflow.db.base import Base


class NotificationChannel(str, enum.Enum):
    IN_APP = "IN_APP"
    EMAIL = "EMAIL"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    recipient_email = Column(String, nullable=True)  # EMAIL channel only
    channel = Column(String(10), nullable=False, default=NotificationChannel.IN_APP.value)
    type = Column(String(30), nullable=False)  # APPROVAL_PENDING, ESCALATION, EMAIL
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    meta_json = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
