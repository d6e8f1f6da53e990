"""Access control API routes."""

from fastapi import APIRouter, Query

from warden.api.dependencies import CurrentUserId, DBSession
from warden.config import settings
from warden.core.access.audit import AccessAuditService
from warden.core.access.dependencies import Declarations, Evaluator, require_capability
from warden.core.access.registry import CapabilityRegistry
from warden.core.access.schemas import (
    AuditEntryResponse,
    CapabilityCheckResponse,
    SyncResult,
)
from warden.core.constants import DEFAULT_AUDIT_PAGE_SIZE, MAX_AUDIT_PAGE_SIZE


router = APIRouter(prefix="/access", tags=["access"])


@router.get(
    "/check",
    response_model=CapabilityCheckResponse,
    summary="Check a capability for the current user",
)
async def check_capability(
    current_user_id: CurrentUserId,
    evaluator: Evaluator,
    capability: str = Query(..., min_length=1),
) -> CapabilityCheckResponse:
    """Report whether the current user holds a capability."""
    allowed = await evaluator.user_has_capability(capability, current_user_id)
    return CapabilityCheckResponse(capability=capability, allowed=allowed)


@router.post(
    "/sync",
    response_model=SyncResult,
    summary="Synchronise declared capabilities",
)
@require_capability("rbac:manage")
async def sync_capabilities(
    current_user_id: CurrentUserId,
    evaluator: Evaluator,
    db: DBSession,
    declarations: Declarations,
) -> SyncResult:
    """Register all declared capabilities and bootstrap the admin role."""
    registry = CapabilityRegistry(
        db,
        declarations,
        evaluator=evaluator,
        admin_username=settings.admin_username,
    )
    return await registry.sync_all()


@router.get(
    "/audit",
    response_model=list[AuditEntryResponse],
    summary="List recent RBAC changes",
)
@require_capability("rbac:viewaudit")
async def list_audit_entries(
    current_user_id: CurrentUserId,
    evaluator: Evaluator,
    db: DBSession,
    limit: int = Query(DEFAULT_AUDIT_PAGE_SIZE, ge=1, le=MAX_AUDIT_PAGE_SIZE),
) -> list[AuditEntryResponse]:
    """Return the newest audit entries first."""
    entries = await AccessAuditService(db).list_entries(limit)
    return [AuditEntryResponse.model_validate(entry) for entry in entries]
