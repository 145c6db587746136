import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class UserRole(str, enum.Enum):
    student = "student"
    parent = "parent"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    login_type: Mapped[str] = mapped_column(String(20), default="email")
    email: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    nick_name: Mapped[str] = mapped_column(String(20))
    age: Mapped[int] = mapped_column(Integer)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), index=True, default=UserRole.student)

    image_uri: Mapped[str | None] = mapped_column(String(500), nullable=True)

    password_hash: Mapped[str] = mapped_column(String(255))
    hashed_refresh_token: Mapped[str | None] = mapped_column(String(128), nullable=True)

    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    parent: Mapped[Optional["User"]] = relationship(back_populates="children", remote_side=[id])
    children: Mapped[list["User"]] = relationship(back_populates="parent")
