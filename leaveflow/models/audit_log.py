"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from leaveflow.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # NULL = automation
    action = Column(String, nullable=False)  # e.g. "LEAVE_SUBMIT", "LEAVE_APPROVE", "RULE_CREATE"
    entity_type = Column(String, nullable=False)  # e.g. "leave_requests", "automation_rules"
    entity_id = Column(String, nullable=True)
    meta_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
