class ServiceError(Exception):
    """Base exception for service-level errors."""


class NotFoundError(ServiceError):
    pass


class ValidationError(ServiceError):
    pass


class DuplicateLinkError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class AuthenticationError(ServiceError):
    pass


class AuthorizationError(ServiceError):
    pass


class RateLimitExceeded(ServiceError):
    def __init__(self, message: str, *, retry_after_minutes: int | None = None):
        super().__init__(message)
        self.retry_after_minutes = retry_after_minutes
