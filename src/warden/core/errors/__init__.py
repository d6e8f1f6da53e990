"""Error handling module with RFC 7807 Problem Details."""

from warden.core.errors.exceptions import (
    AccessStoreError,
    AppException,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from warden.core.errors.handlers import (
    ProblemDetail,
    register_exception_handlers,
)


__all__ = [
    "AccessStoreError",
    "AppException",
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    "ProblemDetail",
    "ServiceUnavailableError",
    "UnauthorizedError",
    "ValidationError",
    "register_exception_handlers",
]
