"""
Automation service - turns lifecycle events into rule engine triggers.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leaveflow.core.config import settings
from leaveflow.core.errors import AutomationError
from leaveflow.models.employee import Employee
from leaveflow.models.leave import LeaveRequest
from leaveflow.schemas.automation_rule import RuleExecutionContext, RuleExecutionResult
from leaveflow.services import leave_wallet_service as wallet
from leaveflow.services.action_executor import ActionExecutor
from leaveflow.services.leave_service import count_pending_for_employee
from leaveflow.services.rule_engine import RuleEngine
from leaveflow.services.rule_repository import SqlAlchemyRuleRepository
from leaveflow.utils.datetime_utils import now_utc
from leaveflow.utils.enums import enum_value

logger = logging.getLogger(__name__)


def get_rule_engine(db: Session) -> RuleEngine:
    return RuleEngine(SqlAlchemyRuleRepository(db), ActionExecutor(db))


def leave_to_context(db: Session, leave_request: LeaveRequest) -> Dict[str, Any]:
    bal = wallet.get_balance_row(db, leave_request.employee_id, leave_request.leave_type, leave_request.from_date.year)
    available = bal.available if bal else wallet.default_entitlement(leave_request.leave_type)
    return {
        "id": leave_request.id,
        "employee_id": leave_request.employee_id,
        "leave_type": enum_value(leave_request.leave_type),
        "start_date": leave_request.from_date.isoformat(),
        "end_date": leave_request.to_date.isoformat(),
        "duration": float(leave_request.total_days),
        "total_days": float(leave_request.total_days),
        "is_half_day": bool(leave_request.is_half_day),
        "status": enum_value(leave_request.status),
        "user_balance": float(available),
    }


def employee_to_context(employee: Employee) -> Dict[str, Any]:
    return {
        "id": employee.id,
        "role": enum_value(employee.role),
        "department": employee.department.name if employee.department else None,
        "manager_id": employee.reporting_manager_id,
        "email": employee.email,
        "name": employee.name,
    }


def build_context(
    db: Session,
    leave_request: LeaveRequest,
    employee: Optional[Employee] = None,
) -> RuleExecutionContext:
    employee = employee or leave_request.employee
    return RuleExecutionContext(
        leave_request=leave_to_context(db, leave_request),
        user=employee_to_context(employee) if employee else None,
        current_date=now_utc(),
        system_state={"pending_requests": count_pending_for_employee(db, leave_request.employee_id)},
    )


def fire_trigger(
    db: Session,
    trigger_type: str,
    leave_request: LeaveRequest,
    employee: Optional[Employee] = None,
) -> List[RuleExecutionResult]:
    """
    Run the rules for one lifecycle event. Engine failures are logged and an
    empty list is returned; the transition that fired the trigger stands.
    """
    if not settings.AUTOMATION_ENABLED:
        return []
    trigger_type = enum_value(trigger_type)
    try:
        context = build_context(db, leave_request, employee)
        return get_rule_engine(db).execute_rules(trigger_type, context)
    except AutomationError as exc:
        logger.error(
            "automation trigger failed: trigger=%s leave_request_id=%s error=%s",
            trigger_type, leave_request.id, exc,
        )
        db.rollback()
        return []
