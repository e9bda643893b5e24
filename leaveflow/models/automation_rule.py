"""
Automation rule models
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Float, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
from leaveflow.db.base import Base


class AutomationRule(Base):
    __tablename__ = "automation_rules"

    id = Column(String(64), primary_key=True)  # rule_<ms>_<random>
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    enabled = Column(Boolean, nullable=False, default=True, index=True)
    priority = Column(Integer, nullable=False, default=1)
    trigger_type = Column(String(30), nullable=False, index=True)
    trigger_conditions = Column(JSON, nullable=False, default=list)
    actions = Column(JSON, nullable=False, default=list)
    validation_rules = Column(JSON, nullable=True)
    created_by = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    last_executed = Column(DateTime(timezone=True), nullable=True)
    execution_count = Column(Integer, nullable=False, default=0)

    executions = relationship(
        "RuleExecution",
        back_populates="rule",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_automation_rules_trigger_priority", "trigger_type", "priority"),
    )


class RuleExecution(Base):
    """One row per rule evaluated within a trigger."""
    __tablename__ = "rule_executions"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(String(64), ForeignKey("automation_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    trigger_type = Column(String(30), nullable=False)
    trigger_context = Column(JSON, nullable=True)
    result = Column(JSON, nullable=True)
    success = Column(Boolean, nullable=False)
    execution_time_ms = Column(Float, nullable=False, default=0)
    actions_executed = Column(JSON, nullable=False, default=list)
    errors = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    rule = relationship("AutomationRule", back_populates="executions")
