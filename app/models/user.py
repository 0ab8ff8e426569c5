from __future__ import annotations

from sqlalchemy import Boolean, Enum, Integer, String, false, true
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin
from .enums import UserRole


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.USER,
        server_default=UserRole.USER.value,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
