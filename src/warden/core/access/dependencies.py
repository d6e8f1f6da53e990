"""FastAPI dependencies and decorators for capability checks.

This module provides:
- A request-scoped AccessEvaluator
- The declaration registry used by capability syncs
- The require_capability route decorator
"""

from collections.abc import Awaitable, Callable
from functools import lru_cache, wraps
from typing import Annotated, ParamSpec, TypeVar, cast

import structlog
from fastapi import Depends, Request

from warden.api.dependencies import DBSession
from warden.config import settings
from warden.core.access.declarations import DeclarationRegistry, build_declaration_registry
from warden.core.access.evaluator import AccessEvaluator
from warden.core.errors import ForbiddenError, UnauthorizedError


logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")


async def get_access_evaluator(request: Request, db: DBSession) -> AccessEvaluator:
    """Return the evaluator for the current request.

    One evaluator is built per request and kept on ``request.state`` so its
    caches never outlive the request or leak between users.
    """
    evaluator = getattr(request.state, "access_evaluator", None)
    if evaluator is None:
        evaluator = AccessEvaluator(db)
        request.state.access_evaluator = evaluator
    return cast(AccessEvaluator, evaluator)


Evaluator = Annotated[AccessEvaluator, Depends(get_access_evaluator)]


@lru_cache
def get_declaration_registry() -> DeclarationRegistry:
    """Get the application's declaration registry."""
    return build_declaration_registry(settings.access_modules_dir)


Declarations = Annotated[DeclarationRegistry, Depends(get_declaration_registry)]


def require_capability(
    capability: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires a capability to access a route.

    The route must declare ``current_user_id`` and ``evaluator`` parameters.

    Usage:
        @router.post("/roles")
        @require_capability("rbac:manage")
        async def create_role(current_user_id: CurrentUserId, evaluator: Evaluator):
            ...

    Raises:
        UnauthorizedError: If the request is anonymous
        ForbiddenError: If the user lacks the capability
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            user_id = cast(int, kwargs.get("current_user_id") or 0)
            evaluator = cast("AccessEvaluator | None", kwargs.get("evaluator"))

            if user_id <= 0:
                raise UnauthorizedError(
                    "Authentication required",
                    error_code="auth_required",
                )

            if evaluator is None:
                raise ForbiddenError(
                    "Capability check failed",
                    error_code="capability_check_failed",
                )

            if not await evaluator.user_has_capability(capability, user_id):
                logger.info(
                    "capability_denied",
                    user_id=user_id,
                    capability=capability,
                )
                raise ForbiddenError(
                    f"Missing required capability: {capability}",
                    error_code="capability_denied",
                    details={"required_capability": capability},
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator
