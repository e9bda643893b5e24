"""
Leave endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leaveflow.core.deps import get_db, get_current_user
from leaveflow.models.employee import Employee
from leaveflow.models.leave import LeaveRequest, LeaveStatus
from leaveflow.schemas.automation_rule import RuleExecutionResult, TriggerType
from leaveflow.schemas.common import ApiResponse
from leaveflow.schemas.leave import (
    LeaveCreateRequest,
    LeaveOut,
    LeaveListResponse,
    LeaveActionResponse,
    ApprovalActionRequest,
    RejectActionRequest,
    CancelActionRequest,
    BalanceOut,
    BalanceListResponse,
)
from leaveflow.services import leave_service
from leaveflow.services import leave_wallet_service as wallet
from leaveflow.services.automation_service import fire_trigger
from leaveflow.utils.datetime_utils import now_utc

router = APIRouter()


def _after_submit(db: Session, leave_request: LeaveRequest, employee: Employee) -> List[RuleExecutionResult]:
    """LEAVE_REQUEST rules first; APPROVAL_PENDING only if nothing decided the leave."""
    results = fire_trigger(db, TriggerType.LEAVE_REQUEST, leave_request, employee)
    db.refresh(leave_request)
    if leave_request.status == LeaveStatus.PENDING:
        results += fire_trigger(db, TriggerType.APPROVAL_PENDING, leave_request, employee)
        db.refresh(leave_request)
    return results


def _action_response(
    message: str,
    leave_request: LeaveRequest,
    automation: Optional[List[RuleExecutionResult]] = None,
) -> ApiResponse:
    return ApiResponse(
        message=message,
        data=LeaveActionResponse(leave=LeaveOut.model_validate(leave_request), automation=automation or []),
    )


@router.post("", response_model=ApiResponse, status_code=201)
async def create_leave_endpoint(
    leave_data: LeaveCreateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Create a leave request for the current user.

    Submitted immediately (PENDING) unless submit=false, in which case it is kept as DRAFT.
    Overlap with another PENDING/APPROVED request returns 409.
    Submission fires LEAVE_REQUEST automation rules, then APPROVAL_PENDING if still pending.
    """
    leave_request = leave_service.create_leave(
        db=db,
        employee=current_user,
        leave_type=leave_data.leave_type,
        from_date=leave_data.from_date,
        to_date=leave_data.to_date,
        is_half_day=leave_data.is_half_day,
        reason=leave_data.reason,
        submit=leave_data.submit,
    )
    automation = []
    if leave_request.status == LeaveStatus.PENDING:
        automation = _after_submit(db, leave_request, current_user)
    message = "Leave request saved as draft" if leave_request.status == LeaveStatus.DRAFT else "Leave request submitted"
    return _action_response(message, leave_request, automation)


@router.post("/{leave_request_id}/submit", response_model=ApiResponse)
async def submit_leave_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Submit a DRAFT leave request"""
    leave_request = leave_service.submit_leave(db, leave_request_id, current_user)
    automation = _after_submit(db, leave_request, current_user)
    return _action_response("Leave request submitted", leave_request, automation)


@router.get("/my", response_model=ApiResponse)
async def list_my_leaves_endpoint(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status", description="Filter by status"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """List current user's leave requests (all statuses)"""
    leave_requests = leave_service.list_my_leaves(db, current_user.id, status_filter)
    return ApiResponse(
        data=LeaveListResponse(
            items=[LeaveOut.model_validate(req) for req in leave_requests],
            total=len(leave_requests),
        )
    )


@router.get("/pending", response_model=ApiResponse)
async def list_pending_endpoint(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Pending requests awaiting the current user's decision

    - HR_ADMIN / IT_ADMIN: all pending requests
    - everyone else: pending requests of direct reports
    """
    leave_requests = leave_service.list_pending_for_approver(db, current_user)
    return ApiResponse(
        data=LeaveListResponse(
            items=[LeaveOut.model_validate(req) for req in leave_requests],
            total=len(leave_requests),
        )
    )


@router.get("/balances", response_model=ApiResponse)
async def balances_endpoint(
    year: Optional[int] = Query(None, description="Calendar year (defaults to the current year)"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Current user's balance per leave type for the year"""
    year = year or now_utc().year
    balances = wallet.get_wallet_balances(db, current_user.id, year)
    return ApiResponse(
        data=BalanceListResponse(
            year=year,
            employee_id=current_user.id,
            items=[BalanceOut.model_validate(b) for b in balances],
        )
    )


@router.get("/{leave_request_id}", response_model=ApiResponse)
async def get_leave_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """A leave request visible to its owner, the owner's manager or an admin"""
    leave_request = leave_service.get_leave(db, leave_request_id)
    if leave_request.employee_id != current_user.id:
        leave_service.validate_approval_authority(db, leave_request, current_user)
    return ApiResponse(data=LeaveOut.model_validate(leave_request))


@router.post("/{leave_request_id}/approve", response_model=ApiResponse)
async def approve_leave_endpoint(
    leave_request_id: int,
    approval_data: ApprovalActionRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Approve a leave request

    - HR_ADMIN / IT_ADMIN: any leave
    - the employee's reporting manager: that employee's leave
    - Employee cannot approve their own leave

    The balance is deducted in the same transaction; 409 when it no longer covers the leave.
    Fires LEAVE_APPROVED automation rules.
    """
    leave_request = leave_service.approve_leave(
        db=db,
        leave_request_id=leave_request_id,
        approver=current_user,
        remarks=approval_data.remarks,
    )
    automation = fire_trigger(db, TriggerType.LEAVE_APPROVED, leave_request)
    db.refresh(leave_request)
    return _action_response("Leave request approved", leave_request, automation)


@router.post("/{leave_request_id}/reject", response_model=ApiResponse)
async def reject_leave_endpoint(
    leave_request_id: int,
    reject_data: RejectActionRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Reject a leave request (same authority as approve, remarks required).
    No balance change. Fires LEAVE_REJECTED automation rules.
    """
    leave_request = leave_service.reject_leave(
        db=db,
        leave_request_id=leave_request_id,
        approver=current_user,
        remarks=reject_data.remarks,
    )
    automation = fire_trigger(db, TriggerType.LEAVE_REJECTED, leave_request)
    db.refresh(leave_request)
    return _action_response("Leave request rejected", leave_request, automation)


@router.post("/{leave_request_id}/cancel", response_model=ApiResponse)
async def cancel_leave_endpoint(
    leave_request_id: int,
    cancel_data: Optional[CancelActionRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """
    Cancel a PENDING or APPROVED leave (owner or admin).
    Cancelling an APPROVED leave gives the days back.
    """
    leave_request = leave_service.cancel_leave(
        db=db,
        leave_request_id=leave_request_id,
        actor=current_user,
        remarks=cancel_data.remarks if cancel_data else None,
    )
    return _action_response("Leave request cancelled", leave_request)
