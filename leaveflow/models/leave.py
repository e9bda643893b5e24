"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Boolean,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from leaveflow.db.base import Base


class LeaveType(str, enum.Enum):
    SICK = "SICK"
    CASUAL = "CASUAL"
    EARNED = "EARNED"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    COMP_OFF = "COMP_OFF"
    BEREAVEMENT = "BEREAVEMENT"
    MARRIAGE = "MARRIAGE"


# Yearly entitlement used when a balance row is first created
DEFAULT_ENTITLEMENTS = {
    LeaveType.SICK: 12,
    LeaveType.CASUAL: 12,
    LeaveType.EARNED: 21,
    LeaveType.MATERNITY: 180,
    LeaveType.PATERNITY: 15,
    LeaveType.COMP_OFF: 10,
    LeaveType.BEREAVEMENT: 3,
    LeaveType.MARRIAGE: 5,
}


class LeaveStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Statuses that count towards the overlap rule
ACTIVE_LEAVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


class ApprovalAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    total_days = Column(Numeric(6, 2), nullable=False)  # 0.5 for half day
    is_half_day = Column(Boolean, nullable=False, default=False)
    reason = Column(Text, nullable=True)
    status = Column(SQLEnum(LeaveStatus), nullable=False, default=LeaveStatus.DRAFT)
    applied_at = Column(DateTime(timezone=True), nullable=True)  # set on submission
    approved_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    approved_remark = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    rejected_remark = Column(Text, nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    cancelled_remark = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    approvals = relationship(
        "LeaveApproval",
        back_populates="leave_request",
        cascade="all, delete-orphan",
        order_by="LeaveApproval.id",
    )

    __table_args__ = (
        Index('ix_leave_requests_employee_dates', 'employee_id', 'from_date', 'to_date'),
        CheckConstraint('from_date <= to_date', name='check_from_date_le_to_date'),
    )


class LeaveApproval(Base):
    __tablename__ = "leave_approvals"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    action_by = Column(Integer, ForeignKey("employees.id"), nullable=True)  # NULL = automation rule
    action = Column(SQLEnum(ApprovalAction), nullable=False)
    automated = Column(Boolean, nullable=False, default=False)
    remarks = Column(Text, nullable=True)
    action_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    leave_request = relationship("LeaveRequest", back_populates="approvals")


class LeaveTransactionAction(str, enum.Enum):
    APPROVE_DEDUCT = "APPROVE_DEDUCT"
    CANCEL_RECREDIT = "CANCEL_RECREDIT"
    RULE_CREDIT = "RULE_CREDIT"
    RULE_DEBIT = "RULE_DEBIT"


class LeaveBalance(Base):
    """
    One row per (employee_id, leave_type, year).
    available = total_entitlement + carry_forward - used, kept by moving used/available
    (or total_entitlement/available) together in a single UPDATE.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    year = Column(Integer, nullable=False, index=True)
    total_entitlement = Column(Numeric(6, 2), nullable=False, default=0)
    used = Column(Numeric(6, 2), nullable=False, default=0)
    available = Column(Numeric(6, 2), nullable=False, default=0)
    carry_forward = Column(Numeric(6, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    employee = relationship("Employee", backref="leave_balances")

    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type", "year", name="uq_leave_balances_employee_type_year"),
    )


class LeaveTransaction(Base):
    """Audit trail for balance movements."""
    __tablename__ = "leave_transactions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    year = Column(Integer, nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    delta_days = Column(Numeric(6, 2), nullable=False)  # + for credit, - for deduct
    action = Column(String(30), nullable=False)
    remarks = Column(Text, nullable=True)
    action_by_employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    action_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
