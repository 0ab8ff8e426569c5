from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.dependencies import (
    get_attempt_tracker,
    get_client_ip,
    get_current_admin,
    get_current_user,
    get_db,
)
from app.models import User
from app.schemas import (
    AdminCodeInfo,
    AuthResponse,
    AuthStats,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    TokenValidation,
    UserRead,
    ValidateTokenRequest,
)
from app.services import AdminCodeAttemptTracker, AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user: User, tokens: dict[str, str]) -> AuthResponse:
    return AuthResponse(
        user=UserRead.model_validate(user),
        tokens=TokenResponse(access_token=tokens["access"], refresh_token=tokens["refresh"]),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    ip: str | None = Depends(get_client_ip),
    tracker: AdminCodeAttemptTracker = Depends(get_attempt_tracker),
    db: Session = Depends(get_db),
):
    service = AuthService(db, tracker)
    user, tokens = service.register(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        admin_code=payload.admin_code,
        ip=ip,
    )
    return _auth_response(user, tokens)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    ip: str | None = Depends(get_client_ip),
    db: Session = Depends(get_db),
):
    user, tokens = AuthService(db).login(username=payload.username, password=payload.password, ip=ip)
    return _auth_response(user, tokens)


@router.post("/refresh", response_model=TokenResponse)
def refresh_tokens(payload: RefreshRequest, db: Session = Depends(get_db)):
    tokens = AuthService(db).refresh_tokens(refresh_token=payload.refresh_token)
    return TokenResponse(access_token=tokens["access"], refresh_token=tokens["refresh"])


@router.post("/validate-token", response_model=TokenValidation)
def validate_token(payload: ValidateTokenRequest, db: Session = Depends(get_db)):
    return AuthService(db).validate_token(payload.token)


@router.get("/me", response_model=UserRead)
def read_current_user(current_user: User = Depends(get_current_user)):
    return UserRead.model_validate(current_user)


@router.get("/admin-code-info", response_model=AdminCodeInfo)
def admin_code_info(db: Session = Depends(get_db)):
    return AuthService(db).admin_code_info()


@router.get("/stats", response_model=AuthStats, dependencies=[Depends(get_current_admin)])
def auth_stats(
    tracker: AdminCodeAttemptTracker = Depends(get_attempt_tracker),
    db: Session = Depends(get_db),
):
    return AuthService(db, tracker).auth_stats()
