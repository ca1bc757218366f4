from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from models.log import AuditLog


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


# Must be called after the business transaction has been committed:
# the entry is committed on its own.
def write_log(db: Session, *, user_id, action, resource, entity_id=None, status="SUCCESS",
              request: Optional[Request] = None, meta=None):
    entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        entity_id=entity_id,
        status=status,
        ip=client_ip(request),
        meta=meta or {},
    )
    db.add(entry)
    db.commit()
    return entry
