"""
Employee schemas
"""
from datetime import date
from typing import Optional
from pydantic import BaseModel, ConfigDict


class EmployeeOut(BaseModel):
    """Compact employee view embedded in leave responses"""
    id: int
    emp_code: str
    name: str
    email: Optional[str] = None
    role: str
    department_id: Optional[int] = None
    reporting_manager_id: Optional[int] = None
    join_date: date
    active: bool

    model_config = ConfigDict(from_attributes=True)
