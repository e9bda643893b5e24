"""
Leave service - leave request lifecycle

DRAFT -> PENDING -> APPROVED | REJECTED, and PENDING/APPROVED -> CANCELLED.
APPROVED and REJECTED are final for approval paths; cancelling an APPROVED
leave gives the deducted days back.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from leaveflow.core.config import settings
from leaveflow.models.employee import Employee, ADMIN_ROLES
from leaveflow.models.leave import (
    ACTIVE_LEAVE_STATUSES,
    ApprovalAction,
    LeaveApproval,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from leaveflow.services import leave_wallet_service as wallet
from leaveflow.services.audit_service import log_audit
from leaveflow.utils.datetime_utils import now_utc, today_utc

logger = logging.getLogger(__name__)

AUTO_APPROVE_REMARK = "Auto-approved by automation rule"
AUTO_REJECT_REMARK = "Auto-rejected by automation rule"


def is_weekend(check_date: date) -> bool:
    """Saturday and Sunday are weekly off"""
    return check_date.weekday() >= 5


def is_admin(employee: Employee) -> bool:
    return employee.role in {r.value for r in ADMIN_ROLES}


def calculate_business_days(from_date: date, to_date: date, is_half_day: bool = False) -> Decimal:
    """
    Count Monday-Friday days in [from_date, to_date].

    A half day is only meaningful on a single business day and counts 0.5.

    Raises:
        HTTPException: If a half day is requested over more than one business day
    """
    if from_date > to_date:
        return Decimal("0")
    days = 0
    current = from_date
    while current <= to_date:
        if not is_weekend(current):
            days += 1
        current += timedelta(days=1)
    if is_half_day:
        if days != 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Half day leave must cover exactly one business day",
            )
        return Decimal("0.5")
    return Decimal(days)


def validate_leave_dates(from_date: date, to_date: date, today: Optional[date] = None) -> None:
    """
    Validate date order, calendar year and the backdating window.

    Raises:
        HTTPException: 400 on any violation
    """
    today = today or today_utc()
    if from_date > to_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Start date cannot be after end date",
        )
    if from_date.year != to_date.year:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Leave cannot span across years. From date year: {from_date.year}, To date year: {to_date.year}",
        )
    earliest = today - timedelta(days=settings.MAX_BACKDATED_DAYS)
    if from_date < earliest:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot apply for leave more than {settings.MAX_BACKDATED_DAYS} days in the past",
        )


def validate_overlap(
    db: Session,
    employee_id: int,
    from_date: date,
    to_date: date,
    exclude_leave_id: Optional[int] = None,
) -> None:
    """
    Validate that the range doesn't intersect an existing PENDING or APPROVED
    request of the same employee, whatever its leave type.

    Raises:
        HTTPException: If overlap detected (409 Conflict)
    """
    # existing.to_date >= new.from_date AND existing.from_date <= new.to_date
    query = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
        LeaveRequest.to_date >= from_date,
        LeaveRequest.from_date <= to_date,
    )
    if exclude_leave_id:
        query = query.filter(LeaveRequest.id != exclude_leave_id)

    overlapping = query.first()
    if overlapping:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Leave request overlaps with existing {overlapping.leave_type.value} request "
                f"({overlapping.from_date} to {overlapping.to_date}). "
                "Please choose different dates or cancel the existing request."
            ),
        )


def get_leave(db: Session, leave_request_id: int) -> LeaveRequest:
    leave_request = (
        db.query(LeaveRequest)
        .options(joinedload(LeaveRequest.employee))
        .filter(LeaveRequest.id == leave_request_id)
        .first()
    )
    if not leave_request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Leave request with id {leave_request_id} not found",
        )
    return leave_request


def _log_transition(leave_request: LeaveRequest, before: LeaveStatus, action: str) -> None:
    logger.info(
        "leave status transition: leave_request_id=%s before=%s after=%s action=%s",
        leave_request.id, before.value, leave_request.status.value, action,
    )


def _submit(db: Session, leave_request: LeaveRequest) -> None:
    """DRAFT -> PENDING after overlap and balance checks. Does not commit."""
    validate_overlap(db, leave_request.employee_id, leave_request.from_date, leave_request.to_date,
                     exclude_leave_id=leave_request.id)
    bal = wallet.ensure_balance(db, leave_request.employee_id, leave_request.leave_type,
                                leave_request.from_date.year)
    if Decimal(str(leave_request.total_days)) > Decimal(str(bal.available)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Insufficient leave balance. Available: {bal.available} days",
        )
    before = leave_request.status
    leave_request.status = LeaveStatus.PENDING
    leave_request.applied_at = now_utc()
    db.flush()
    _log_transition(leave_request, before, "submit")


def create_leave(
    db: Session,
    employee: Employee,
    leave_type: LeaveType,
    from_date: date,
    to_date: date,
    is_half_day: bool = False,
    reason: Optional[str] = None,
    submit: bool = True,
) -> LeaveRequest:
    """
    Create a leave request as DRAFT, and submit it to PENDING unless submit=False.

    Raises:
        HTTPException: 400 on invalid dates/insufficient balance, 409 on overlap
    """
    validate_leave_dates(from_date, to_date)
    total_days = calculate_business_days(from_date, to_date, is_half_day)
    if total_days <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Leave request must have at least one business day",
        )

    leave_request = LeaveRequest(
        employee_id=employee.id,
        leave_type=leave_type,
        from_date=from_date,
        to_date=to_date,
        total_days=total_days,
        is_half_day=is_half_day,
        reason=reason,
        status=LeaveStatus.DRAFT,
    )
    db.add(leave_request)
    db.flush()

    try:
        if submit:
            _submit(db, leave_request)
    except HTTPException:
        db.rollback()
        raise

    log_audit(
        db,
        actor_id=employee.id,
        action="LEAVE_SUBMIT" if submit else "LEAVE_DRAFT",
        entity_type="leave_requests",
        entity_id=leave_request.id,
        meta={
            "leave_type": leave_type.value,
            "from_date": from_date,
            "to_date": to_date,
            "total_days": total_days,
            "status": leave_request.status.value,
        },
        commit=False,
    )
    db.commit()
    db.refresh(leave_request)
    return leave_request


def submit_leave(db: Session, leave_request_id: int, actor: Employee) -> LeaveRequest:
    """Submit an existing DRAFT of the actor's own"""
    leave_request = get_leave(db, leave_request_id)
    if leave_request.employee_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only submit your own leave requests",
        )
    if leave_request.status != LeaveStatus.DRAFT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot submit leave request with status {leave_request.status.value}",
        )
    try:
        _submit(db, leave_request)
    except HTTPException:
        db.rollback()
        raise
    log_audit(db, actor.id, "LEAVE_SUBMIT", "leave_requests", leave_request.id,
              meta={"status": leave_request.status.value}, commit=False)
    db.commit()
    db.refresh(leave_request)
    return leave_request


def validate_approval_authority(db: Session, leave_request: LeaveRequest, approver: Employee) -> None:
    """
    Approval authority:
    - HR_ADMIN / IT_ADMIN: any leave
    - the employee's reporting manager: that employee's leave
    - nobody approves their own leave

    Raises:
        HTTPException: 403 without authority
    """
    if approver.id == leave_request.employee_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employee cannot approve their own leave",
        )
    if is_admin(approver):
        return
    employee = db.query(Employee).filter(Employee.id == leave_request.employee_id).first()
    if employee and employee.reporting_manager_id == approver.id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You do not have approval authority for this leave request",
    )


def _require_pending(leave_request: LeaveRequest, verb: str) -> None:
    if leave_request.status != LeaveStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {verb} leave request with status {leave_request.status.value}",
        )


def _claim_transition(
    db: Session,
    leave_request: LeaveRequest,
    values: Dict[Any, Any],
    verb: str,
) -> LeaveStatus:
    """
    Move the row out of the status this session saw with one conditional UPDATE.

    Returns the status the row left. When another transaction changed the
    status first, nothing is written and 409 is raised.
    """
    before = leave_request.status
    changed = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.id == leave_request.id, LeaveRequest.status == before)
        .update(values, synchronize_session="fetch")
    )
    if changed == 0:
        db.rollback()
        logger.warning(
            "leave status transition lost a race: leave_request_id=%s expected=%s action=%s",
            leave_request.id, before.value, verb,
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot {verb} leave request: it was changed by another request",
        )
    return before


def _approve(
    db: Session,
    leave_request: LeaveRequest,
    actor_id: Optional[int],
    remarks: Optional[str],
    automated: bool,
) -> LeaveRequest:
    """PENDING -> APPROVED with the balance deduction in the same commit."""
    _require_pending(leave_request, "approve")
    before = _claim_transition(
        db, leave_request,
        {
            LeaveRequest.status: LeaveStatus.APPROVED,
            LeaveRequest.approved_by_id: actor_id,
            LeaveRequest.approved_remark: remarks,
            LeaveRequest.approved_at: now_utc(),
        },
        "approve",
    )
    try:
        wallet.deduct(
            db,
            leave_request.employee_id,
            leave_request.leave_type,
            leave_request.from_date.year,
            leave_request.total_days,
            leave_id=leave_request.id,
            actor_id=actor_id,
            remarks=remarks,
        )
    except HTTPException:
        db.rollback()
        raise

    db.add(LeaveApproval(
        leave_request_id=leave_request.id,
        action_by=actor_id,
        action=ApprovalAction.APPROVE,
        automated=automated,
        remarks=remarks,
    ))
    log_audit(
        db, actor_id, "LEAVE_AUTO_APPROVE" if automated else "LEAVE_APPROVE",
        "leave_requests", leave_request.id,
        meta={
            "employee_id": leave_request.employee_id,
            "leave_type": leave_request.leave_type.value,
            "total_days": leave_request.total_days,
            "remarks": remarks,
        },
        commit=False,
    )
    db.commit()
    db.refresh(leave_request)
    _log_transition(leave_request, before, "auto_approve" if automated else "approve")
    return leave_request


def _reject(
    db: Session,
    leave_request: LeaveRequest,
    actor_id: Optional[int],
    remarks: str,
    automated: bool,
) -> LeaveRequest:
    """PENDING -> REJECTED. Balances are untouched."""
    _require_pending(leave_request, "reject")
    before = _claim_transition(
        db, leave_request,
        {
            LeaveRequest.status: LeaveStatus.REJECTED,
            LeaveRequest.rejected_by_id: actor_id,
            LeaveRequest.rejected_remark: remarks,
            LeaveRequest.rejected_at: now_utc(),
        },
        "reject",
    )
    db.add(LeaveApproval(
        leave_request_id=leave_request.id,
        action_by=actor_id,
        action=ApprovalAction.REJECT,
        automated=automated,
        remarks=remarks,
    ))
    log_audit(
        db, actor_id, "LEAVE_AUTO_REJECT" if automated else "LEAVE_REJECT",
        "leave_requests", leave_request.id,
        meta={
            "employee_id": leave_request.employee_id,
            "leave_type": leave_request.leave_type.value,
            "remarks": remarks,
        },
        commit=False,
    )
    db.commit()
    db.refresh(leave_request)
    _log_transition(leave_request, before, "auto_reject" if automated else "reject")
    return leave_request


def approve_leave(
    db: Session,
    leave_request_id: int,
    approver: Employee,
    remarks: Optional[str] = None,
) -> LeaveRequest:
    """
    Manually approve a leave request

    Raises:
        HTTPException: 400 not PENDING, 403 no authority, 404 missing,
            409 balance no longer covers total_days
    """
    leave_request = get_leave(db, leave_request_id)
    _require_pending(leave_request, "approve")
    validate_approval_authority(db, leave_request, approver)
    return _approve(db, leave_request, approver.id, remarks, automated=False)


def reject_leave(
    db: Session,
    leave_request_id: int,
    approver: Employee,
    remarks: str,
) -> LeaveRequest:
    """Manually reject a leave request (remarks required)"""
    leave_request = get_leave(db, leave_request_id)
    _require_pending(leave_request, "reject")
    validate_approval_authority(db, leave_request, approver)
    return _reject(db, leave_request, approver.id, remarks, automated=False)


def auto_approve_leave(db: Session, leave_request_id: int, remarks: str = AUTO_APPROVE_REMARK) -> LeaveRequest:
    """Approval on behalf of an automation rule (no approver, no authority check)"""
    return _approve(db, get_leave(db, leave_request_id), None, remarks, automated=True)


def auto_reject_leave(db: Session, leave_request_id: int, reason: Optional[str] = None) -> LeaveRequest:
    """Rejection on behalf of an automation rule"""
    return _reject(db, get_leave(db, leave_request_id), None, reason or AUTO_REJECT_REMARK, automated=True)


def cancel_leave(
    db: Session,
    leave_request_id: int,
    actor: Employee,
    remarks: Optional[str] = None,
) -> LeaveRequest:
    """
    Cancel a PENDING or APPROVED leave (owner or admin).
    An APPROVED leave gives its days back to the balance.
    """
    leave_request = get_leave(db, leave_request_id)
    if leave_request.employee_id != actor.id and not is_admin(actor):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only cancel your own leave requests",
        )
    if leave_request.status not in ACTIVE_LEAVE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot cancel leave request with status {leave_request.status.value}",
        )

    before = _claim_transition(
        db, leave_request,
        {
            LeaveRequest.status: LeaveStatus.CANCELLED,
            LeaveRequest.cancelled_by_id: actor.id,
            LeaveRequest.cancelled_remark: remarks,
            LeaveRequest.cancelled_at: now_utc(),
        },
        "cancel",
    )
    if before == LeaveStatus.APPROVED:
        wallet.recredit(
            db,
            leave_request.employee_id,
            leave_request.leave_type,
            leave_request.from_date.year,
            leave_request.total_days,
            leave_id=leave_request.id,
            actor_id=actor.id,
            remarks=remarks,
        )
    db.add(LeaveApproval(
        leave_request_id=leave_request.id,
        action_by=actor.id,
        action=ApprovalAction.CANCEL,
        automated=False,
        remarks=remarks,
    ))
    log_audit(
        db, actor.id, "LEAVE_CANCEL", "leave_requests", leave_request.id,
        meta={"before": before.value, "recredited": before == LeaveStatus.APPROVED, "remarks": remarks},
        commit=False,
    )
    db.commit()
    db.refresh(leave_request)
    _log_transition(leave_request, before, "cancel")
    return leave_request


def list_my_leaves(
    db: Session,
    employee_id: int,
    status_filter: Optional[LeaveStatus] = None,
) -> List[LeaveRequest]:
    query = db.query(LeaveRequest).filter(LeaveRequest.employee_id == employee_id)
    if status_filter:
        query = query.filter(LeaveRequest.status == status_filter)
    return query.order_by(LeaveRequest.from_date.desc()).all()


def list_pending_for_approver(db: Session, current_user: Employee) -> List[LeaveRequest]:
    """
    Pending requests the user may decide on:
    - admins: all pending requests (except their own)
    - everyone else: pending requests of direct reports
    """
    query = db.query(LeaveRequest).options(joinedload(LeaveRequest.employee)).filter(
        LeaveRequest.status == LeaveStatus.PENDING,
        LeaveRequest.employee_id != current_user.id,
    )
    if not is_admin(current_user):
        report_ids = [
            emp_id for (emp_id,) in db.query(Employee.id).filter(
                Employee.reporting_manager_id == current_user.id,
                Employee.active == True,  # noqa: E712
            ).all()
        ]
        if not report_ids:
            return []
        query = query.filter(LeaveRequest.employee_id.in_(report_ids))
    # oldest first, so approvers see oldest requests first
    return query.order_by(LeaveRequest.applied_at.asc()).all()


def count_pending_for_employee(db: Session, employee_id: int) -> int:
    return db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status == LeaveStatus.PENDING,
    ).count()
