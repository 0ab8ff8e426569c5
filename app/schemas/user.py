from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.enums import UserRole
from .common import Pagination


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: UserRole
    enabled: bool
    locked: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserListResponse(BaseModel):
    pagination: Pagination
    items: list[UserRead]


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    enabled: Optional[bool] = None
    locked: Optional[bool] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class UserStats(BaseModel):
    total: int
    admins: int
    users: int
    enabled: int
    disabled: int
    locked: int
