from __future__ import annotations

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from app.core.security import create_token, hash_password, hash_refresh_token, verify_password
from app.models.quiz import Quiz, QuizBestScore, QuizResult
from app.models.user import User, UserRole

log = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session):
        self.db = db

    def _email_taken(self, email: str, *, exclude_user: User | None = None) -> bool:
        stmt = select(User.id).where(User.email == email)
        if exclude_user is not None:
            stmt = stmt.where(User.id != exclude_user.id)
        return self.db.scalar(stmt) is not None

    def _flush_email_change(self) -> None:
        # _email_taken can lose a race with a concurrent request; the unique index on users.email decides.
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("email already exists") from e

    def signup(self, *, email: str, password: str, nick_name: str, age: int, role: UserRole | None = None) -> User:
        if not password or len(password) < int(settings.password_min_length or 0):
            raise InvalidArgument("password too short")
        if self._email_taken(email):
            raise Conflict("email already exists")

        user = User(
            email=email,
            password_hash=hash_password(password),
            nick_name=nick_name,
            age=int(age),
            role=role or UserRole.student,
        )
        self.db.add(user)
        self._flush_email_change()
        return user

    def authenticate(self, *, email: str, password: str) -> User | None:
        user = self.db.scalar(select(User).where(User.email == email))
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    def issue_tokens(self, user: User) -> dict[str, str]:
        access_token = create_token(user_id=str(user.id), role=user.role.value, token_type="access")
        refresh_token = create_token(user_id=str(user.id), role=user.role.value, token_type="refresh")
        user.hashed_refresh_token = hash_refresh_token(refresh_token)
        return {"access_token": access_token, "refresh_token": refresh_token}

    def rotate_refresh_token(self, user: User, token: str) -> dict[str, str]:
        # Logged out, or the token was already rotated away.
        if not user.hashed_refresh_token or user.hashed_refresh_token != hash_refresh_token(token):
            raise Forbidden("refresh token revoked")
        return self.issue_tokens(user)

    def logout(self, user: User) -> None:
        user.hashed_refresh_token = None

    def edit_profile(self, user: User, *, nick_name: str, email: str) -> User:
        if self._email_taken(email, exclude_user=user):
            raise Conflict("email already exists")
        user.nick_name = nick_name
        user.email = email
        self._flush_email_change()
        return user

    def delete_account(self, user: User) -> None:
        self.db.execute(update(User).where(User.parent_id == user.id).values(parent_id=None))
        self.db.execute(delete(QuizBestScore).where(QuizBestScore.user_id == user.id))
        self.db.execute(delete(QuizResult).where(QuizResult.user_id == user.id))
        self.db.execute(delete(Quiz).where(Quiz.user_id == user.id))
        self.db.delete(user)
        log.info("account deleted: user_id=%s", user.id)

    def _student_by_email(self, email: str) -> User:
        student = self.db.scalar(select(User).where(User.email == email, User.role == UserRole.student))
        if student is None:
            raise NotFound("student not found")
        return student

    def add_child(self, parent: User, student_email: str) -> User:
        student = self._student_by_email(student_email)
        if student.parent_id is not None and student.parent_id != parent.id:
            raise Conflict("student is already linked to another parent")
        student.parent_id = parent.id
        return student

    def remove_child(self, parent: User, student_email: str) -> User:
        child = self.get_child(parent, student_email)
        child.parent_id = None
        return child

    def get_child(self, parent: User, student_email: str) -> User:
        child = self.db.scalar(select(User).where(User.email == student_email, User.parent_id == parent.id))
        if child is None:
            raise NotFound("student not found")
        return child

    def children(self, parent: User) -> list[User]:
        return list(self.db.scalars(select(User).where(User.parent_id == parent.id).order_by(User.nick_name)))
