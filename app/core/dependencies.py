from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError
from sqlalchemy.orm import Session

from app.core.db import get_db_session
from app.core import security
from app.models import User, UserRole
from app.services.admin_attempts import AdminCodeAttemptTracker


bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Session:
    yield from get_db_session()


def get_attempt_tracker() -> AdminCodeAttemptTracker:
    return AdminCodeAttemptTracker()


def get_client_ip(request: Request) -> str | None:
    return getattr(request.state, "ip", None)


def _get_token(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication scheme",
        )
    return credentials.credentials


def get_token_payload(token: str = Depends(_get_token)) -> dict:
    try:
        return security.decode_access_token(token)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def get_current_user(db: Session = Depends(get_db), payload: dict = Depends(get_token_payload)) -> User:
    user = db.query(User).filter(User.id == int(payload["sub"])).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.enabled or user.locked:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled or locked")
    return user


def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrators only")
    return user
