import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.cache import cache_manager
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware
from app.core.database_init import init_database_schema
from app.routers import get_api_router
from app.services import exceptions as service_exceptions
from app.services.bootstrap import ensure_default_admin

# most specific first; the handler walks this list in order
SERVICE_ERROR_STATUS: list[tuple[type[service_exceptions.ServiceError], int]] = [
    (service_exceptions.NotFoundError, status.HTTP_404_NOT_FOUND),
    (service_exceptions.DuplicateLinkError, status.HTTP_400_BAD_REQUEST),
    (service_exceptions.ValidationError, status.HTTP_400_BAD_REQUEST),
    (service_exceptions.ConflictError, status.HTTP_400_BAD_REQUEST),
    (service_exceptions.AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (service_exceptions.AuthorizationError, status.HTTP_403_FORBIDDEN),
    (service_exceptions.RateLimitExceeded, status.HTTP_429_TOO_MANY_REQUESTS),
]


def status_for(exc: service_exceptions.ServiceError) -> int:
    for exc_type, status_code in SERVICE_ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may carry exception instances that JSON cannot encode
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging()

    logger = logging.getLogger("app.validation")
    error_logger = logging.getLogger("app.errors")

    app = FastAPI(title=settings.PROJECT_NAME)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(
            "Validation error on %s %s detail=%s",
            request.method,
            request.url.path,
            exc.errors(),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_errors(exc)},
        )

    @app.exception_handler(service_exceptions.ServiceError)
    async def service_exception_handler(request: Request, exc: service_exceptions.ServiceError):
        status_code = status_for(exc)
        if status_code >= 500:
            error_logger.error("Unhandled service error on %s %s: %s", request.method, request.url.path, exc)
        else:
            error_logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        headers = None
        if isinstance(exc, service_exceptions.RateLimitExceeded) and exc.retry_after_minutes:
            headers = {"Retry-After": str(exc.retry_after_minutes * 60)}
        return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)

    api_router = get_api_router()
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.on_event("startup")
    def startup_event():
        init_database_schema()
        cache_manager.init_backend()
        ensure_default_admin()

    return app


app = create_app()
