"""
Database models
"""
from leaveflow.models.department import Department
from leaveflow.models.employee import Employee, Role, ADMIN_ROLES
from leaveflow.models.audit_log import AuditLog
from leaveflow.models.leave import (
    LeaveRequest,
    LeaveApproval,
    LeaveBalance,
    LeaveTransaction,
    LeaveType,
    LeaveStatus,
    ApprovalAction,
    LeaveTransactionAction,
    ACTIVE_LEAVE_STATUSES,
    DEFAULT_ENTITLEMENTS,
)
from leaveflow.models.automation_rule import AutomationRule, RuleExecution
from leaveflow.models.notification import Notification, NotificationChannel

__all__ = [
    "Department",
    "Employee",
    "Role",
    "ADMIN_ROLES",
    "AuditLog",
    "LeaveRequest",
    "LeaveApproval",
    "LeaveBalance",
    "LeaveTransaction",
    "LeaveType",
    "LeaveStatus",
    "ApprovalAction",
    "LeaveTransactionAction",
    "ACTIVE_LEAVE_STATUSES",
    "DEFAULT_ENTITLEMENTS",
    "AutomationRule",
    "RuleExecution",
    "Notification",
    "NotificationChannel",
]
