from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.rate_limit import rate_limit
from app.core.security import get_current_user, get_refresh_user
from app.core.audit import record_account_event
from app.db.session import get_db
from app.models.audit_event import AuditEventType
from app.models.user import User, UserRole
from app.services.accounts import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class SigninRequest(BaseModel):
    email: str = Field(min_length=6, max_length=50, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=20)


class SignupRequest(BaseModel):
    email: str = Field(min_length=6, max_length=50, pattern=EMAIL_PATTERN)
    password: str = Field(max_length=20)
    nick_name: str = Field(min_length=1, max_length=20)
    age: int = Field(ge=1, le=120)
    role: UserRole = UserRole.student


class EditProfileRequest(BaseModel):
    nick_name: str = Field(min_length=1, max_length=20)
    email: str = Field(min_length=6, max_length=50, pattern=EMAIL_PATTERN)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class ProfileResponse(BaseModel):
    id: str
    email: str
    login_type: str
    nick_name: str
    age: int
    role: UserRole
    image_uri: str | None
    parent_id: str | None


def profile_of(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "login_type": user.login_type,
        "nick_name": user.nick_name,
        "age": int(user.age),
        "role": user.role,
        "image_uri": user.image_uri,
        "parent_id": str(user.parent_id) if user.parent_id else None,
    }


@router.post("/signup", status_code=201)
def signup(
    request: Request,
    payload: SignupRequest,
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_signup", limit=10, window_seconds=60),
):
    user = AccountService(db).signup(
        email=payload.email,
        password=payload.password,
        nick_name=payload.nick_name,
        age=payload.age,
        role=payload.role,
    )
    record_account_event(db, request, AuditEventType.signup, user=user, role=user.role.value)
    db.commit()
    return {"ok": True}


@router.post("/signin", response_model=TokenResponse)
def signin(
    request: Request,
    payload: SigninRequest,
    db: Session = Depends(get_db),
    _: object = rate_limit(key_prefix="auth_signin", limit=20, window_seconds=60),
):
    service = AccountService(db)
    user = service.authenticate(email=payload.email, password=payload.password)
    if user is None:
        record_account_event(db, request, AuditEventType.login_failed, email=payload.email)
        db.commit()
        raise HTTPException(status_code=401, detail="invalid credentials")

    tokens = service.issue_tokens(user)
    record_account_event(db, request, AuditEventType.login_success, user=user)
    db.commit()
    return TokenResponse(**tokens)


@router.get("/refresh", response_model=TokenResponse)
def refresh(request: Request, db: Session = Depends(get_db), auth: tuple[User, str] = Depends(get_refresh_user)):
    user, token = auth
    tokens = AccountService(db).rotate_refresh_token(user, token)
    record_account_event(db, request, AuditEventType.token_refreshed, user=user)
    db.commit()
    return TokenResponse(**tokens)


@router.get("/me", response_model=ProfileResponse)
def me(user: User = Depends(get_current_user)):
    return profile_of(user)


@router.patch("/me", response_model=ProfileResponse)
def edit_profile(body: EditProfileRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    AccountService(db).edit_profile(user, nick_name=body.nick_name, email=body.email)
    db.commit()
    db.refresh(user)
    return profile_of(user)


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    AccountService(db).logout(user)
    record_account_event(db, request, AuditEventType.logout, user=user)
    db.commit()
    return {"ok": True}


@router.delete("/me")
def delete_account(request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    record_account_event(db, request, AuditEventType.account_deleted, email=user.email, user_id=user.id)
    AccountService(db).delete_account(user)
    db.commit()
    return {"ok": True}
