"""
Leave Wallet Service - per (employee, leave type, year) balances.

- Rows are created lazily with the default yearly entitlement.
- available = total_entitlement + carry_forward - used at all times.
- Every mutation is one conditional UPDATE that moves two columns by the same
  delta, so concurrent approvals cannot lose an update or overdraw a row.
- Functions here never commit: the caller commits together with the status
  change that caused the movement.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from leaveflow.core.config import settings
from leaveflow.models.leave import (
    DEFAULT_ENTITLEMENTS,
    LeaveBalance,
    LeaveTransaction,
    LeaveTransactionAction,
    LeaveType,
)
from leaveflow.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

INCREMENT_OPERATIONS = frozenset({"increment", "add", "credit"})
DECREMENT_OPERATIONS = frozenset({"decrement", "subtract", "deduct", "debit"})

Number = Union[Decimal, float, int, str]


def _to_decimal(value: Number) -> Decimal:
    """
    Raises:
        ValueError: value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Expected a number of days, got {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Expected a number of days, got {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Expected a finite number of days, got {value!r}")
    return amount


def default_entitlement(leave_type: LeaveType) -> Decimal:
    return Decimal(DEFAULT_ENTITLEMENTS.get(leave_type, settings.DEFAULT_ENTITLEMENT_DAYS))


def get_balance_row(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    year: int,
) -> Optional[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type == leave_type,
            LeaveBalance.year == year,
        )
        .first()
    )


def ensure_balance(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    year: int,
) -> LeaveBalance:
    """Return the balance row, creating it with the default entitlement when missing."""
    bal = get_balance_row(db, employee_id, leave_type, year)
    if bal:
        return bal
    entitlement = default_entitlement(leave_type)
    bal = LeaveBalance(
        employee_id=employee_id,
        leave_type=leave_type,
        year=year,
        total_entitlement=entitlement,
        used=Decimal("0"),
        available=entitlement,
        carry_forward=Decimal("0"),
    )
    db.add(bal)
    db.flush()
    logger.info(
        "balance row created: employee_id=%s leave_type=%s year=%s entitlement=%s",
        employee_id, leave_type.value, year, entitlement,
    )
    return bal


def get_wallet_balances(db: Session, employee_id: int, year: int) -> List[LeaveBalance]:
    """All balance rows for employee/year, creating defaults for every leave type."""
    for lt in LeaveType:
        ensure_balance(db, employee_id, lt, year)
    db.commit()
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
        .order_by(LeaveBalance.leave_type)
        .all()
    )


def _log_transaction(
    db: Session,
    employee_id: int,
    leave_id: Optional[int],
    year: int,
    leave_type: LeaveType,
    delta_days: Decimal,
    action: LeaveTransactionAction,
    remarks: Optional[str],
    action_by_employee_id: Optional[int],
) -> None:
    db.add(
        LeaveTransaction(
            employee_id=employee_id,
            leave_id=leave_id,
            year=year,
            leave_type=leave_type,
            delta_days=delta_days,
            action=action.value,
            remarks=remarks,
            action_by_employee_id=action_by_employee_id,
            action_at=now_utc(),
        )
    )


def _balance_filter(query, employee_id: int, leave_type: LeaveType, year: int):
    return query.filter(
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.leave_type == leave_type,
        LeaveBalance.year == year,
    )


def deduct(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    year: int,
    days: Number,
    leave_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
    action: LeaveTransactionAction = LeaveTransactionAction.APPROVE_DEDUCT,
) -> None:
    """
    used += days, available -= days, only if available >= days.

    Raises:
        HTTPException: 409 when the balance does not cover the deduction
    """
    amount = _to_decimal(days)
    ensure_balance(db, employee_id, leave_type, year)
    updated = _balance_filter(db.query(LeaveBalance), employee_id, leave_type, year).filter(
        LeaveBalance.available >= amount
    ).update(
        {
            LeaveBalance.used: LeaveBalance.used + amount,
            LeaveBalance.available: LeaveBalance.available - amount,
        },
        synchronize_session="fetch",
    )
    if updated != 1:
        bal = get_balance_row(db, employee_id, leave_type, year)
        available = bal.available if bal else Decimal("0")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Insufficient leave balance. Available: {available} days, Requested: {amount} days",
        )
    _log_transaction(db, employee_id, leave_id, year, leave_type, -amount, action, remarks, actor_id)


def recredit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    year: int,
    days: Number,
    leave_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> None:
    """Reverse an earlier deduction: used -= days, available += days."""
    amount = _to_decimal(days)
    ensure_balance(db, employee_id, leave_type, year)
    updated = _balance_filter(db.query(LeaveBalance), employee_id, leave_type, year).filter(
        LeaveBalance.used >= amount
    ).update(
        {
            LeaveBalance.used: LeaveBalance.used - amount,
            LeaveBalance.available: LeaveBalance.available + amount,
        },
        synchronize_session="fetch",
    )
    if updated != 1:
        logger.warning(
            "recredit skipped, used below amount: employee_id=%s leave_type=%s year=%s amount=%s",
            employee_id, leave_type.value, year, amount,
        )
        return
    _log_transaction(
        db, employee_id, leave_id, year, leave_type, amount,
        LeaveTransactionAction.CANCEL_RECREDIT, remarks, actor_id,
    )


def credit_entitlement(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    year: int,
    days: Number,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> None:
    """Grant extra days (e.g. comp-off accrual): total_entitlement += days, available += days."""
    amount = _to_decimal(days)
    ensure_balance(db, employee_id, leave_type, year)
    _balance_filter(db.query(LeaveBalance), employee_id, leave_type, year).update(
        {
            LeaveBalance.total_entitlement: LeaveBalance.total_entitlement + amount,
            LeaveBalance.available: LeaveBalance.available + amount,
        },
        synchronize_session="fetch",
    )
    _log_transaction(
        db, employee_id, None, year, leave_type, amount,
        LeaveTransactionAction.RULE_CREDIT, remarks, actor_id,
    )


def adjust_balance(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    year: int,
    amount: Number,
    operation: str,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> LeaveBalance:
    """
    Apply a rule-driven balance operation.

    increment credits entitlement; decrement consumes days like an approval.

    Raises:
        ValueError: unknown operation, non-numeric or non-positive amount
        HTTPException: 409 on decrement beyond the available days
    """
    amount = _to_decimal(amount)
    if amount <= 0:
        raise ValueError(f"Balance adjustment amount must be positive, got {amount}")
    op = (operation or "").strip().lower()
    if op in INCREMENT_OPERATIONS:
        credit_entitlement(db, employee_id, leave_type, year, amount, actor_id, remarks)
    elif op in DECREMENT_OPERATIONS:
        deduct(
            db, employee_id, leave_type, year, amount,
            actor_id=actor_id, remarks=remarks, action=LeaveTransactionAction.RULE_DEBIT,
        )
    else:
        raise ValueError(f"Unknown balance operation: {operation}")
    bal = get_balance_row(db, employee_id, leave_type, year)
    logger.info(
        "balance adjusted: employee_id=%s leave_type=%s year=%s op=%s amount=%s available=%s",
        employee_id, leave_type.value, year, op, amount, bal.available,
    )
    return bal


def get_transactions(
    db: Session,
    employee_id: int,
    year: Optional[int] = None,
    limit: int = 100,
) -> List[LeaveTransaction]:
    q = db.query(LeaveTransaction).filter(LeaveTransaction.employee_id == employee_id)
    if year is not None:
        q = q.filter(LeaveTransaction.year == year)
    return q.order_by(LeaveTransaction.id.desc()).limit(limit).all()
