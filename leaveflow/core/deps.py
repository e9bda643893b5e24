"""
Dependencies and guards for FastAPI endpoints

Identity comes from the X-Employee-Id header set by the gateway in front of
this service.
"""
from typing import Generator, Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from leaveflow.db.session import SessionLocal
from leaveflow.models.employee import Employee, Role


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    x_employee_id: Optional[str] = Header(None, alias="X-Employee-Id"),
    db: Session = Depends(get_db),
) -> Employee:
    """
    Resolve the calling employee from the X-Employee-Id header
    """
    if not x_employee_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Employee-Id header",
        )
    try:
        employee_id = int(x_employee_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-Employee-Id header",
        )

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return employee


def require_roles(*allowed_roles: Role):
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/hr-only")
        async def hr_endpoint(user: Employee = Depends(require_roles(Role.HR_ADMIN))):
            ...
    """
    allowed = {r.value for r in allowed_roles}

    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}"
            )
        return current_user
    return role_checker
