"""
Notification endpoints
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session
from leaveflow.core.deps import get_db, get_current_user
from leaveflow.models.employee import Employee
from leaveflow.schemas.common import ApiResponse
from leaveflow.services.notification_service import list_for_employee

router = APIRouter()


class NotificationOut(BaseModel):
    id: int
    channel: str
    type: str
    title: str
    message: str
    meta_json: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


@router.get("/me", response_model=ApiResponse)
async def my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Notifications addressed to the current user, newest first"""
    items: List[NotificationOut] = [
        NotificationOut.model_validate(n)
        for n in list_for_employee(db, current_user.id, unread_only=unread_only, limit=limit)
    ]
    return ApiResponse(data=items)
