"""
Notification service - in-app notifications and the email outbox.

Rows are only added and flushed here; the caller decides when to commit.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from leaveflow.models.employee import Employee, Role
from leaveflow.models.notification import Notification, NotificationChannel
from leaveflow.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    recipient_id: Optional[int],
    type: str,
    title: str,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
    channel: NotificationChannel = NotificationChannel.IN_APP,
    recipient_email: Optional[str] = None,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        recipient_email=recipient_email,
        channel=channel.value,
        type=type,
        title=title,
        message=message,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        is_read=False,
    )
    db.add(notification)
    db.flush()
    logger.info(
        "notification queued: id=%s channel=%s type=%s recipient_id=%s recipient_email=%s",
        notification.id, channel.value, type, recipient_id, recipient_email,
    )
    return notification


def _get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee with id {employee_id} not found",
        )
    return employee


def notify_manager(
    db: Session,
    employee_id: int,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
) -> Notification:
    """
    Notify the employee's reporting manager.

    Raises:
        HTTPException: 404 if the employee is unknown, 400 if there is no manager
    """
    employee = _get_employee(db, employee_id)
    if not employee.reporting_manager_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Employee {employee_id} has no reporting manager",
        )
    return create_notification(
        db,
        recipient_id=employee.reporting_manager_id,
        type="APPROVAL_PENDING",
        title=f"Leave request from {employee.name}",
        message=message,
        meta=meta,
    )


def find_escalation_target(db: Session) -> Optional[Employee]:
    """First active HR admin, by id"""
    return (
        db.query(Employee)
        .filter(Employee.role == Role.HR_ADMIN.value, Employee.active == True)  # noqa: E712
        .order_by(Employee.id.asc())
        .first()
    )


def escalate(
    db: Session,
    employee_id: int,
    message: str,
    escalate_to: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Notification:
    """
    Escalate to an explicit employee, or to HR when none is given.

    Raises:
        HTTPException: 404 on unknown employees, 400 when nobody can receive it
    """
    _get_employee(db, employee_id)
    if escalate_to is not None:
        target = _get_employee(db, int(escalate_to))
    else:
        target = find_escalation_target(db)
        if target is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No active HR admin available for escalation",
            )
    return create_notification(
        db,
        recipient_id=target.id,
        type="ESCALATION",
        title="Leave request escalated",
        message=message,
        meta={**(meta or {}), "employee_id": employee_id},
    )


def send_email(
    db: Session,
    recipients: Iterable[str],
    subject: str,
    body: str,
    meta: Optional[Dict[str, Any]] = None,
) -> List[Notification]:
    """
    Queue one EMAIL notification per recipient. Delivery is done out of process.

    Raises:
        ValueError: when no recipient is given
    """
    if isinstance(recipients, str):
        recipients = [recipients]
    addresses = [str(r).strip() for r in recipients or [] if r and str(r).strip()]
    if not addresses:
        raise ValueError("SEND_EMAIL requires at least one recipient")

    queued = []
    for address in addresses:
        recipient = db.query(Employee).filter(Employee.email == address).first()
        queued.append(
            create_notification(
                db,
                recipient_id=recipient.id if recipient else None,
                type="EMAIL",
                title=subject,
                message=body,
                meta=meta,
                channel=NotificationChannel.EMAIL,
                recipient_email=address,
            )
        )
    return queued


def list_for_employee(
    db: Session,
    employee_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    query = db.query(Notification).filter(Notification.recipient_id == employee_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    return query.order_by(Notification.id.desc()).limit(limit).all()
