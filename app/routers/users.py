from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_admin, get_db
from app.models import User, UserRole
from app.schemas import (
    ChangePasswordRequest,
    MessageResponse,
    Pagination,
    UserListResponse,
    UserRead,
    UserStats,
    UserUpdate,
)
from app.services import UserService

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(get_current_admin)])


@router.get("", response_model=UserListResponse)
def list_users(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
    search: Optional[str] = Query(default=None, max_length=100),
    role: Optional[UserRole] = Query(default=None),
    db: Session = Depends(get_db),
):
    items, total = UserService(db).list_users(page=page, size=size, search=search, role=role)
    return UserListResponse(
        pagination=Pagination(page=page, size=size, total=total),
        items=[UserRead.model_validate(user) for user in items],
    )


@router.get("/stats", response_model=UserStats)
def user_stats(db: Session = Depends(get_db)):
    return UserService(db).user_stats()


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return UserRead.model_validate(UserService(db).get_user(user_id))


@router.put("/{user_id}", response_model=UserRead)
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db)):
    user = UserService(db).update_user(user_id=user_id, data=payload.model_dump(exclude_none=True))
    return UserRead.model_validate(user)


@router.patch("/{user_id}/toggle-lock", response_model=UserRead)
def toggle_lock(user_id: int, db: Session = Depends(get_db)):
    return UserRead.model_validate(UserService(db).toggle_lock(user_id=user_id))


@router.patch("/{user_id}/change-password", response_model=MessageResponse)
def change_password(user_id: int, payload: ChangePasswordRequest, db: Session = Depends(get_db)):
    UserService(db).change_password(
        user_id=user_id,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return MessageResponse(message="Password changed")


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    UserService(db).delete_user(user_id=user_id, actor=admin)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
