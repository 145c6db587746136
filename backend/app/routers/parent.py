from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.security import require_roles
from app.core.audit import record_account_event
from app.db.session import get_db
from app.models.audit_event import AuditEventType
from app.models.user import User, UserRole
from app.routers.auth import ProfileResponse, profile_of
from app.schemas.quiz import QuizResultResponse, result_to_response
from app.services.accounts import AccountService
from app.services.quiz_lifecycle import QuizService

router = APIRouter(prefix="/parent", tags=["parent"])

require_parent = require_roles(UserRole.parent)


class ChildRequest(BaseModel):
    student_email: str


@router.post("/child")
def add_child(request: Request, body: ChildRequest, db: Session = Depends(get_db), parent: User = Depends(require_parent)):
    child = AccountService(db).add_child(parent, body.student_email)
    record_account_event(db, request, AuditEventType.child_linked, user=parent, child=child)
    db.commit()
    return {"ok": True}


@router.delete("/child")
def remove_child(request: Request, body: ChildRequest, db: Session = Depends(get_db), parent: User = Depends(require_parent)):
    child = AccountService(db).remove_child(parent, body.student_email)
    record_account_event(db, request, AuditEventType.child_unlinked, user=parent, child=child)
    db.commit()
    return {"ok": True}


@router.get("/children", response_model=list[ProfileResponse])
def list_children(db: Session = Depends(get_db), parent: User = Depends(require_parent)):
    return [profile_of(c) for c in AccountService(db).children(parent)]


@router.get("/children/{student_email}/progress", response_model=list[QuizResultResponse])
def child_progress(student_email: str, db: Session = Depends(get_db), parent: User = Depends(require_parent)):
    AccountService(db).get_child(parent, student_email)
    return [result_to_response(r) for r in QuizService(db).student_progress(student_email)]


@router.get("/children/{student_email}/best-scores", response_model=dict[str, float])
def child_best_scores(student_email: str, db: Session = Depends(get_db), parent: User = Depends(require_parent)):
    AccountService(db).get_child(parent, student_email)
    return QuizService(db).student_best_scores(student_email)
