import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import security
from app.models import User, UserRole
from . import exceptions as service_exceptions

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def list_users(
        self,
        *,
        page: int = 1,
        size: int = 20,
        search: str | None = None,
        role: UserRole | None = None,
    ) -> tuple[list[User], int]:
        query = self.db.query(User)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
        if role is not None:
            query = query.filter(User.role == role)
        total = query.count()
        items = query.order_by(User.id).offset((page - 1) * size).limit(size).all()
        return items, total

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise service_exceptions.NotFoundError("User not found")
        return user

    def update_user(self, *, user_id: int, data: dict) -> User:
        user = self.get_user(user_id)
        email = data.get("email")
        if email is not None:
            email = email.strip().lower()
            clash = self.db.query(User.id).filter(User.email == email, User.id != user.id).first()
            if clash:
                raise service_exceptions.ConflictError("Email is already registered")
            data["email"] = email
        for key, value in data.items():
            if value is not None:
                setattr(user, key, value)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise service_exceptions.ConflictError("Email is already registered") from exc
        self.db.refresh(user)
        logger.info("User updated: %s", user.username)
        return user

    def toggle_lock(self, *, user_id: int) -> User:
        user = self.get_user(user_id)
        user.locked = not user.locked
        self.db.commit()
        logger.info("User %s %s", user.username, "locked" if user.locked else "unlocked")
        return user

    def change_password(self, *, user_id: int, current_password: str, new_password: str) -> None:
        user = self.get_user(user_id)
        if not security.verify_password(current_password, user.password_hash):
            raise service_exceptions.AuthenticationError("Current password is incorrect")
        user.password_hash = security.create_password_hash(new_password)
        self.db.add(user)
        self.db.commit()
        logger.info("Password changed for user %s", user.username)

    def delete_user(self, *, user_id: int, actor: User | None = None) -> None:
        user = self.get_user(user_id)
        if actor is not None and actor.id == user.id:
            raise service_exceptions.ValidationError("You cannot delete your own account")
        self.db.delete(user)
        self.db.commit()
        logger.info("User deleted: %s", user.username)

    def user_stats(self) -> dict:
        total = self.db.query(func.count(User.id)).scalar() or 0
        admins = self.db.query(func.count(User.id)).filter(User.role == UserRole.ADMIN).scalar() or 0
        enabled = self.db.query(func.count(User.id)).filter(User.enabled.is_(True)).scalar() or 0
        locked = self.db.query(func.count(User.id)).filter(User.locked.is_(True)).scalar() or 0
        return {
            "total": total,
            "admins": admins,
            "users": total - admins,
            "enabled": enabled,
            "disabled": total - enabled,
            "locked": locked,
        }
