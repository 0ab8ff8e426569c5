from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import jwt
from jwt import InvalidTokenError
from passlib.context import CryptContext

from .config import get_settings

if TYPE_CHECKING:
    from app.models import User

password_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


def create_password_hash(password: str) -> str:
    return password_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return password_context.verify(password, hashed_password)


def user_claims(user: User) -> dict[str, Any]:
    """Identity claims shared by both token kinds."""
    return {
        "sub": str(user.id),
        "username": user.username,
        "role": user.role.value,
    }


def create_access_token(user: User, *, now: datetime | None = None) -> str:
    settings = get_settings()
    issued = now or datetime.now(tz=timezone.utc)
    payload = user_claims(user)
    payload.update(type=ACCESS, exp=issued + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)


def create_refresh_token(user: User, *, now: datetime | None = None) -> str:
    settings = get_settings()
    issued = now or datetime.now(tz=timezone.utc)
    payload = user_claims(user)
    payload.update(
        type=REFRESH,
        scope=REFRESH,
        exp=issued + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
    return jwt.encode(payload, settings.JWT_REFRESH_SECRET_KEY, algorithm=ALGORITHM)


def create_token_pair(user: User) -> dict[str, str]:
    now = datetime.now(tz=timezone.utc)
    return {
        ACCESS: create_access_token(user, now=now),
        REFRESH: create_refresh_token(user, now=now),
    }


def decode_access_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    if payload.get("type") != ACCESS:
        raise InvalidTokenError("Not an access token")
    return payload


def decode_refresh_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    payload = jwt.decode(token, settings.JWT_REFRESH_SECRET_KEY, algorithms=[ALGORITHM])
    if payload.get("type") != REFRESH or payload.get("scope") != REFRESH:
        raise InvalidTokenError("Not a refresh token")
    return payload
