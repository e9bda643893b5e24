"""
Action executor - applies one rule action to the system.

Every failure leaves as ActionExecutionError so the engine can record it and
move on to the next action. Each successful action commits on its own; a
failed one rolls back only its own partial work.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leaveflow.core.errors import ActionExecutionError, UnknownActionTypeError
from leaveflow.core.logging import AUTOMATION_EVENTS_LOGGER
from leaveflow.models.leave import LeaveType
from leaveflow.schemas.automation_rule import ActionType, RuleAction, RuleExecutionContext
from leaveflow.services import leave_service, leave_wallet_service, notification_service
from leaveflow.services.audit_service import log_audit
from leaveflow.utils.enums import enum_value

logger = logging.getLogger(__name__)

event_logger = logging.getLogger(AUTOMATION_EVENTS_LOGGER)

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _param(parameters: Dict[str, Any], *names: str, default: Any = None) -> Any:
    """First present value among snake_case/camelCase spellings"""
    for name in names:
        if parameters.get(name) is not None:
            return parameters[name]
    return default


def _leave_request_id(context: RuleExecutionContext) -> int:
    leave = context.leave_request or {}
    if leave.get("id") is None:
        raise ValueError("Action requires a leave request in the execution context")
    return int(leave["id"])


def _subject_employee_id(context: RuleExecutionContext) -> int:
    """The employee the action is about: the context user, else the leave's owner"""
    user = context.user or {}
    leave = context.leave_request or {}
    employee_id = user.get("id") if user.get("id") is not None else _param(leave, "employee_id", "employeeId")
    if employee_id is None:
        raise ValueError("Action requires a user or leave request employee in the execution context")
    return int(employee_id)


def _balance_year(context: RuleExecutionContext, parameters: Dict[str, Any]) -> int:
    year = _param(parameters, "year")
    if year is not None:
        return int(year)
    start = _param(context.leave_request or {}, "start_date", "startDate")
    if isinstance(start, date):
        return start.year
    if isinstance(start, str) and len(start) >= 4 and start[:4].isdigit():
        return int(start[:4])
    return context.current_date.year


class ActionExecutor:
    """Executes rule actions against the database"""

    def __init__(self, db: Session):
        self.db = db
        self._handlers = {
            ActionType.AUTO_APPROVE.value: self._auto_approve,
            ActionType.AUTO_REJECT.value: self._auto_reject,
            ActionType.NOTIFY_MANAGER.value: self._notify_manager,
            ActionType.ESCALATE.value: self._escalate,
            ActionType.SEND_EMAIL.value: self._send_email,
            ActionType.UPDATE_BALANCE.value: self._update_balance,
            ActionType.LOG_EVENT.value: self._log_event,
        }

    def execute(self, action: RuleAction, context: RuleExecutionContext) -> None:
        """
        Run one action now.

        Raises:
            UnknownActionTypeError: the action type has no handler
            ActionExecutionError: the handler failed
        """
        action_type = enum_value(action.type)
        handler = self._handlers.get(action_type)
        if handler is None:
            raise UnknownActionTypeError(action_type)

        try:
            handler(action.parameters or {}, context)
        except HTTPException as exc:
            self.db.rollback()
            raise ActionExecutionError(action_type, str(exc.detail), cause=exc) from exc
        except (ValueError, TypeError, KeyError) as exc:
            self.db.rollback()
            raise ActionExecutionError(action_type, str(exc), cause=exc) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("action %s failed with a database error", action_type)
            raise ActionExecutionError(action_type, "Database error", cause=exc) from exc
        except Exception as exc:
            self.db.rollback()
            logger.exception("action %s failed unexpectedly", action_type)
            raise ActionExecutionError(action_type, str(exc) or type(exc).__name__, cause=exc) from exc
        logger.info("action executed: type=%s action_id=%s", action_type, action.id)

    def _auto_approve(self, parameters: Dict[str, Any], context: RuleExecutionContext) -> None:
        remarks = _param(parameters, "remarks", "comment", default=leave_service.AUTO_APPROVE_REMARK)
        leave_service.auto_approve_leave(self.db, _leave_request_id(context), remarks=remarks)

    def _auto_reject(self, parameters: Dict[str, Any], context: RuleExecutionContext) -> None:
        leave_service.auto_reject_leave(self.db, _leave_request_id(context), reason=_param(parameters, "reason"))

    def _notify_manager(self, parameters: Dict[str, Any], context: RuleExecutionContext) -> None:
        leave = context.leave_request or {}
        user = context.user or {}
        employee_id = _subject_employee_id(context)
        message = _param(
            parameters, "message",
            default=f"Leave request from {user.get('name') or f'employee {employee_id}'} requires your attention.",
        )
        notification_service.notify_manager(
            self.db,
            employee_id,
            message,
            meta={
                "leave_request_id": leave.get("id"),
                "automated": True,
                "template": _param(parameters, "template"),
            },
        )
        self.db.commit()

    def _escalate(self, parameters: Dict[str, Any], context: RuleExecutionContext) -> None:
        leave = context.leave_request or {}
        reason = _param(parameters, "reason", default="Automated escalation")
        notification_service.escalate(
            self.db,
            _subject_employee_id(context),
            f"Leave request has been escalated for review: {reason}",
            escalate_to=_param(parameters, "escalate_to", "escalateTo"),
            meta={"leave_request_id": leave.get("id"), "automated": True, "reason": reason},
        )
        self.db.commit()

    def _send_email(self, parameters: Dict[str, Any], context: RuleExecutionContext) -> None:
        leave = context.leave_request or {}
        template = _param(parameters, "template")
        subject = _param(parameters, "subject", default=template or "Leave request update")
        body = _param(parameters, "body", "message", default=f"Template: {template}" if template else subject)
        notification_service.send_email(
            self.db,
            _param(parameters, "recipients", default=[]),
            subject,
            body,
            meta={"leave_request_id": leave.get("id"), "template": template, "automated": True},
        )
        self.db.commit()

    def _update_balance(self, parameters: Dict[str, Any], context: RuleExecutionContext) -> None:
        employee_id = _subject_employee_id(context)
        balance_type = _param(
            parameters, "balance_type", "balanceType",
            default=_param(context.leave_request or {}, "leave_type", "leaveType"),
        )
        if balance_type is None:
            raise ValueError("UPDATE_BALANCE requires a balance type")
        leave_type = LeaveType(enum_value(balance_type))
        year = _balance_year(context, parameters)
        amount = _param(parameters, "amount", default=0)
        operation = _param(parameters, "operation", default="increment")

        leave_wallet_service.adjust_balance(
            self.db,
            employee_id,
            leave_type,
            year,
            amount,
            operation,
            remarks=_param(parameters, "reason", default="Balance updated by automation rule"),
        )
        log_audit(
            self.db, None, "BALANCE_RULE_UPDATE", "leave_balances", None,
            meta={
                "employee_id": employee_id,
                "leave_type": leave_type.value,
                "year": year,
                "operation": operation,
                "amount": amount,
            },
            commit=False,
        )
        self.db.commit()

    def _log_event(self, parameters: Dict[str, Any], context: RuleExecutionContext) -> None:
        level = _LOG_LEVELS.get(str(_param(parameters, "level", default="info")).lower(), logging.INFO)
        event_logger.log(
            level,
            "Custom rule event: message=%s category=%s leave_request_id=%s user_id=%s",
            _param(parameters, "message"),
            _param(parameters, "category"),
            (context.leave_request or {}).get("id"),
            (context.user or {}).get("id"),
        )


class DryRunActionExecutor(ActionExecutor):
    """Records what would run, touches nothing. Used to test rules."""

    def __init__(self, db: Optional[Session] = None):
        super().__init__(db)
        self.planned = []

    def execute(self, action: RuleAction, context: RuleExecutionContext) -> None:
        action_type = enum_value(action.type)
        if action_type not in self._handlers:
            raise UnknownActionTypeError(action_type)
        self.planned.append(action_type)
        logger.debug("dry run: would execute action type=%s action_id=%s", action_type, action.id)
