"""
Two sessions acting on the same leave request. The session that decides from
a stale status must get 409 and change nothing.
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException, status
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from leaveflow.db.base import Base
from leaveflow.models import Department, Employee, Role
from leaveflow.models.leave import ApprovalAction, LeaveApproval, LeaveRequest, LeaveStatus, LeaveType
from leaveflow.services import leave_service
from leaveflow.services import leave_wallet_service as wallet
from leaveflow.tests.conftest import next_monday


@pytest.fixture
def sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'leaves.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    make_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first, second = make_session(), make_session()
    yield first, second
    first.close()
    second.close()
    engine.dispose()


@pytest.fixture
def staff(sessions):
    db = sessions[0]
    dept = Department(name="Engineering", active=True)
    db.add(dept)
    db.commit()
    joined = date.today() - timedelta(days=365)
    manager = Employee(
        emp_code="MGR001", name="Team Manager", role=Role.MANAGER.value,
        department_id=dept.id, join_date=joined, active=True,
    )
    db.add(manager)
    db.commit()
    employee = Employee(
        emp_code="EMP001", name="Test Employee", role=Role.EMPLOYEE.value,
        department_id=dept.id, reporting_manager_id=manager.id, join_date=joined, active=True,
    )
    db.add(employee)
    db.commit()
    return employee.id, manager.id


@pytest.fixture
def pending_leave(sessions, staff):
    db = sessions[0]
    employee = db.get(Employee, staff[0])
    monday = next_monday()
    leave = leave_service.create_leave(
        db, employee, LeaveType.EARNED, monday, monday + timedelta(days=1), reason="Vacation",
    )
    assert leave.status == LeaveStatus.PENDING
    return leave.id, monday.year


def _approvals(db, leave_id, action):
    return (
        db.query(LeaveApproval)
        .filter(LeaveApproval.leave_request_id == leave_id, LeaveApproval.action == action)
        .count()
    )


def test_second_approval_of_the_same_leave_is_refused(sessions, staff, pending_leave):
    first, second = sessions
    leave_id, year = pending_leave
    manager = second.get(Employee, staff[1])

    stale = leave_service.get_leave(second, leave_id)
    assert stale.status == LeaveStatus.PENDING

    leave_service.auto_approve_leave(first, leave_id)

    with pytest.raises(HTTPException) as exc:
        leave_service.approve_leave(second, leave_id, manager)
    assert exc.value.status_code == status.HTTP_409_CONFLICT

    first.expire_all()
    bal = wallet.get_balance_row(first, staff[0], LeaveType.EARNED, year)
    assert bal.used == Decimal("2")
    assert bal.available == Decimal("19")
    assert _approvals(first, leave_id, ApprovalAction.APPROVE) == 1
    assert first.get(LeaveRequest, leave_id).approved_by_id is None


def test_rejection_after_a_concurrent_approval_is_refused(sessions, staff, pending_leave):
    first, second = sessions
    leave_id, year = pending_leave
    manager_first = first.get(Employee, staff[1])
    manager_second = second.get(Employee, staff[1])

    leave_service.get_leave(second, leave_id)
    leave_service.approve_leave(first, leave_id, manager_first)

    with pytest.raises(HTTPException) as exc:
        leave_service.reject_leave(second, leave_id, manager_second, "No cover")
    assert exc.value.status_code == status.HTTP_409_CONFLICT

    first.expire_all()
    leave = first.get(LeaveRequest, leave_id)
    assert leave.status == LeaveStatus.APPROVED
    assert leave.rejected_remark is None
    assert _approvals(first, leave_id, ApprovalAction.REJECT) == 0
    assert wallet.get_balance_row(first, staff[0], LeaveType.EARNED, year).used == Decimal("2")


def test_cancelling_an_approved_leave_twice_recredits_once(sessions, staff, pending_leave):
    first, second = sessions
    leave_id, year = pending_leave
    leave_service.approve_leave(first, leave_id, first.get(Employee, staff[1]))

    owner_first = first.get(Employee, staff[0])
    owner_second = second.get(Employee, staff[0])
    assert leave_service.get_leave(second, leave_id).status == LeaveStatus.APPROVED

    leave_service.cancel_leave(first, leave_id, owner_first, remarks="Plans changed")

    with pytest.raises(HTTPException) as exc:
        leave_service.cancel_leave(second, leave_id, owner_second, remarks="Plans changed")
    assert exc.value.status_code == status.HTTP_409_CONFLICT

    first.expire_all()
    bal = wallet.get_balance_row(first, staff[0], LeaveType.EARNED, year)
    assert bal.used == Decimal("0")
    assert bal.available == Decimal("21")
    assert _approvals(first, leave_id, ApprovalAction.CANCEL) == 1


def test_losing_session_sees_the_winner_after_the_conflict(sessions, staff, pending_leave):
    first, second = sessions
    leave_id, _ = pending_leave
    manager = second.get(Employee, staff[1])

    leave_service.get_leave(second, leave_id)
    leave_service.auto_reject_leave(first, leave_id, reason="Blackout period")

    with pytest.raises(HTTPException):
        leave_service.approve_leave(second, leave_id, manager)

    # the 409 rolled back and expired the stale copy
    assert leave_service.get_leave(second, leave_id).status == LeaveStatus.REJECTED
