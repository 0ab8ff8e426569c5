import logging

from jwt import InvalidTokenError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import security
from app.core.config import get_settings
from app.models import User, UserRole

from . import exceptions
from .admin_attempts import AdminCodeAttemptTracker

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Session, tracker: AdminCodeAttemptTracker | None = None):
        self.db = db
        self.settings = get_settings()
        self.tracker = tracker or AdminCodeAttemptTracker()

    def issue_tokens(self, user: User) -> dict[str, str]:
        return security.create_token_pair(user)

    def register(
        self,
        *,
        username: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
        admin_code: str | None = None,
        ip: str | None = None,
    ) -> tuple[User, dict[str, str]]:
        username = username.strip()
        email = email.strip().lower()
        if role == UserRole.ADMIN:
            self._check_admin_code(admin_code, username=username, ip=ip)

        existing = (
            self.db.query(User)
            .filter(or_(User.username == username, User.email == email))
            .first()
        )
        if existing is not None:
            if existing.username == username:
                raise exceptions.ConflictError("Username is already taken")
            raise exceptions.ConflictError("Email is already registered")

        user = User(
            username=username,
            email=email,
            password_hash=security.create_password_hash(password),
            role=role,
            enabled=True,
            locked=False,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise exceptions.ConflictError("Username or email is already registered") from exc
        self.db.refresh(user)
        logger.info("User registered: %s (%s)", user.username, user.role.value)
        return user, self.issue_tokens(user)

    def login(self, *, username: str, password: str, ip: str | None = None) -> tuple[User, dict[str, str]]:
        identifier = username.strip()
        user = self.db.query(User).filter(User.username == identifier).first()
        if not user or not security.verify_password(password, user.password_hash):
            logger.warning("Failed login for '%s' from %s", identifier, ip)
            raise exceptions.AuthenticationError("Invalid username or password")
        if not user.enabled:
            raise exceptions.AuthenticationError("Account is disabled")
        if user.locked:
            raise exceptions.AuthenticationError("Account is locked")
        logger.info("User logged in: %s", user.username)
        return user, self.issue_tokens(user)

    def refresh_tokens(self, *, refresh_token: str) -> dict[str, str]:
        try:
            payload = security.decode_refresh_token(refresh_token)
        except InvalidTokenError as exc:
            raise exceptions.AuthenticationError("Invalid refresh token") from exc

        user = self.db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user:
            raise exceptions.AuthenticationError("User not found")
        if not user.enabled or user.locked:
            raise exceptions.AuthenticationError("Account is disabled or locked")
        return self.issue_tokens(user)

    def validate_token(self, token: str) -> dict:
        try:
            payload = security.decode_access_token(token)
        except InvalidTokenError:
            return {"valid": False, "username": None, "role": None, "user_id": None}
        user = self.db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user or not user.enabled or user.locked:
            return {"valid": False, "username": None, "role": None, "user_id": None}
        return {"valid": True, "username": user.username, "role": user.role.value, "user_id": user.id}

    def admin_code_info(self) -> dict:
        if self.settings.ADMIN_CODE_HINT_ENABLED:
            return {
                "message": "Use one of these codes to register an administrator",
                "codes": self.settings.admin_codes,
            }
        return {
            "message": "Contact the system administrator to obtain an admin registration code",
            "codes": [],
        }

    def auth_stats(self) -> dict:
        stats = self.tracker.stats()
        stats["configured_admin_codes"] = len(self.settings.admin_codes)
        return stats

    def _check_admin_code(self, admin_code: str | None, *, username: str, ip: str | None) -> None:
        minutes_left = self.tracker.minutes_left(ip)
        if minutes_left > 0:
            logger.warning("Blocked admin registration attempt from %s", ip)
            raise exceptions.RateLimitExceeded(
                f"Too many invalid admin code attempts. Try again in {minutes_left} minute(s)",
                retry_after_minutes=minutes_left,
            )
        if admin_code is None or not admin_code.strip():
            raise exceptions.ValidationError("Admin code is required")
        if admin_code.strip() not in self.settings.admin_codes:
            self.tracker.record_failure(ip, username)
            raise exceptions.AuthorizationError("Invalid admin code")
        self.tracker.clear(ip)
        logger.info("Valid admin code used by '%s' from %s", username, ip)
