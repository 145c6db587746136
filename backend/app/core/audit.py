from __future__ import annotations

import logging
import uuid

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.rate_limit import client_ip
from app.models.audit_event import AccountAuditEvent, AuditEventType
from app.models.user import User

log = logging.getLogger(__name__)


def record_account_event(
    db: Session,
    request: Request,
    event_type: AuditEventType,
    *,
    user: User | None = None,
    child: User | None = None,
    email: str | None = None,
    **details,
) -> AccountAuditEvent:
    """Add an audit row to the session. Committing is left to the caller.

    Account deletion passes no `user`: the row would otherwise point at the row being deleted,
    so the email and id travel in `email` / `details` instead.
    """

    actor_id: uuid.UUID | None = user.id if user is not None else None
    event = AccountAuditEvent(
        event_type=event_type,
        actor_user_id=actor_id,
        child_user_id=child.id if child is not None else None,
        email=email if email is not None else (user.email if user is not None else None),
        details={k: str(v) for k, v in details.items()},
        request_id=getattr(request.state, "request_id", None),
        ip=client_ip(request),
    )
    db.add(event)
    log.info("account event: %s actor=%s child=%s", event_type.value, actor_id, event.child_user_id)
    return event
