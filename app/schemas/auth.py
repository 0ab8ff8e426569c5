from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.enums import UserRole
from .common import TokenResponse
from .user import UserRead


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.USER
    admin_code: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("username cannot be blank")
        return normalized


class RefreshRequest(BaseModel):
    refresh_token: str


class ValidateTokenRequest(BaseModel):
    token: str


class AuthResponse(BaseModel):
    user: UserRead
    tokens: TokenResponse


class TokenValidation(BaseModel):
    valid: bool
    username: Optional[str] = None
    role: Optional[str] = None
    user_id: Optional[int] = None


class AdminCodeInfo(BaseModel):
    message: str
    codes: list[str]


class AuthStats(BaseModel):
    tracked_ips: int
    blocked_ips: int
    max_attempts: int
    lockout_minutes: int
    configured_admin_codes: int
