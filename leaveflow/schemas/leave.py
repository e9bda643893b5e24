"""
Leave schemas
"""
from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict, field_serializer

from leaveflow.models.leave import LeaveType, LeaveStatus, ApprovalAction
from leaveflow.schemas.automation_rule import RuleExecutionResult
from leaveflow.schemas.employee import EmployeeOut
from leaveflow.utils.datetime_utils import iso_8601_utc


class LeaveCreateRequest(BaseModel):
    """Schema for creating a leave request"""
    leave_type: LeaveType = Field(..., description="Type of leave")
    from_date: date = Field(..., description="Start date of leave")
    to_date: date = Field(..., description="End date of leave")
    is_half_day: bool = Field(False, description="Half day (single business day only)")
    reason: Optional[str] = Field(None, max_length=1000, description="Reason for leave")
    submit: bool = Field(True, description="Submit immediately (PENDING) instead of saving as DRAFT")


class ApprovalActionRequest(BaseModel):
    """Schema for leave approval request"""
    remarks: Optional[str] = Field(None, description="Optional remarks for approval")


class RejectActionRequest(BaseModel):
    """Schema for leave rejection request"""
    remarks: str = Field(..., min_length=1, description="Remarks for rejection")


class CancelActionRequest(BaseModel):
    """Schema for leave cancellation request"""
    remarks: Optional[str] = Field(None, description="Optional remarks for cancellation")


class LeaveApprovalOut(BaseModel):
    id: int
    action_by: Optional[int] = None
    action: ApprovalAction
    automated: bool
    remarks: Optional[str] = None
    action_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("action_at", when_used="always")
    @classmethod
    def _ser_action_at(cls, dt: datetime) -> Optional[str]:
        return iso_8601_utc(dt)


class LeaveOut(BaseModel):
    """Schema for leave output"""
    id: int
    employee_id: int
    employee: Optional[EmployeeOut] = None
    leave_type: LeaveType
    from_date: date
    to_date: date
    total_days: float
    is_half_day: bool
    reason: Optional[str] = None
    status: LeaveStatus
    applied_at: Optional[datetime] = None
    approved_by_id: Optional[int] = None
    approved_remark: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by_id: Optional[int] = None
    rejected_remark: Optional[str] = None
    rejected_at: Optional[datetime] = None
    cancelled_by_id: Optional[int] = None
    cancelled_remark: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    approvals: List[LeaveApprovalOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_serializer(
        "applied_at", "approved_at", "rejected_at", "cancelled_at",
        when_used="always",
    )
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class LeaveActionResponse(BaseModel):
    """Leave after a lifecycle transition plus the automation outcome it triggered"""
    leave: LeaveOut
    automation: List[RuleExecutionResult] = Field(default_factory=list)


class LeaveListResponse(BaseModel):
    items: List[LeaveOut]
    total: int


class BalanceOut(BaseModel):
    """One leave type balance for API."""
    leave_type: LeaveType
    year: int
    total_entitlement: float
    carry_forward: float
    used: float
    available: float

    model_config = ConfigDict(from_attributes=True)


class BalanceListResponse(BaseModel):
    year: int
    employee_id: int
    items: List[BalanceOut]
