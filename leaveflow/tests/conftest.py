"""
Pytest configuration and fixtures
"""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from leaveflow.main import app
from leaveflow.db.base import Base
from leaveflow.core.deps import get_db

# Import all models to ensure they're registered with Base.metadata
from leaveflow.models import (
    Department,
    Employee,
    Role,
    AuditLog,
    LeaveRequest,
    LeaveApproval,
    LeaveBalance,
    LeaveTransaction,
    AutomationRule,
    RuleExecution,
    Notification,
)  # noqa


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(employee) -> dict:
    """Identity header the gateway would set for this employee"""
    return {"X-Employee-Id": str(employee.id)}


def next_monday(offset_days: int = 7) -> date:
    """First Monday on or after today + offset_days"""
    start = date.today() + timedelta(days=offset_days)
    return start + timedelta(days=(7 - start.weekday()) % 7)


def _make_employee(db, emp_code, name, role, department_id, manager_id=None, email=None):
    emp = Employee(
        emp_code=emp_code,
        name=name,
        email=email,
        role=role.value,
        department_id=department_id,
        reporting_manager_id=manager_id,
        join_date=date.today() - timedelta(days=365),
        active=True,
    )
    db.add(emp)
    db.commit()
    db.refresh(emp)
    return emp


@pytest.fixture
def test_department(db):
    dept = Department(name="Engineering", active=True)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


@pytest.fixture
def hr_admin(db, test_department):
    return _make_employee(db, "HR001", "HR Admin", Role.HR_ADMIN, test_department.id, email="hr@example.com")


@pytest.fixture
def manager(db, test_department):
    return _make_employee(db, "MGR001", "Team Manager", Role.MANAGER, test_department.id, email="mgr@example.com")


@pytest.fixture
def employee(db, test_department, manager):
    return _make_employee(
        db, "EMP001", "Test Employee", Role.EMPLOYEE, test_department.id,
        manager_id=manager.id, email="emp@example.com",
    )


@pytest.fixture
def other_employee(db, test_department):
    """Employee without a reporting manager"""
    return _make_employee(db, "EMP002", "Other Employee", Role.EMPLOYEE, test_department.id)
