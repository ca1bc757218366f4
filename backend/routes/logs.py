# backend/routes/logs.py
from datetime import datetime, time
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from database import get_db
from models.log import AuditLog
from models.users import User
from schemas.common import Envelope, Page, make_page, ok
from utils.errors import ValidationFailed
from utils.tokenJWT import role_required

router = APIRouter(prefix="/logs", tags=["Logs"])


class LogResponse(BaseModel):
    id: int
    ts: datetime
    user_id: Optional[int] = None
    action: str
    resource: str
    entity_id: Optional[int] = None
    status: str
    ip: Optional[str] = None
    meta: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


def _parse_day(value: str, end_of_day: bool = False) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationFailed(f"Invalid date: {value}", errors=["Expected YYYY-MM-DD or ISO datetime"])
    # A bare date on the upper bound covers the whole day
    if end_of_day and len(value) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


@router.get("", response_model=Envelope[Page[LogResponse]])
def get_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    resource: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="SUCCESS or FAIL"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    query = db.query(AuditLog)

    if action:
        query = query.filter(AuditLog.action.ilike(f"%{action}%"))
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if resource:
        query = query.filter(AuditLog.resource.ilike(f"%{resource}%"))
    if status:
        query = query.filter(AuditLog.status == status.upper())
    if date_from:
        query = query.filter(AuditLog.ts >= _parse_day(date_from))
    if date_to:
        query = query.filter(AuditLog.ts <= _parse_day(date_to, end_of_day=True))

    total = query.count()
    logs = (
        query.order_by(AuditLog.ts.desc(), AuditLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    items = [LogResponse.model_validate(entry) for entry in logs]
    return ok("Logs retrieved successfully", make_page(items, total, page, page_size))
