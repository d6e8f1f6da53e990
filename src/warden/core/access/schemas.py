"""Pydantic schemas and value types for the access engine."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from warden.core.constants import CAPABILITY_SEPARATOR, DEFAULT_ROLE_SORTORDER


class Permission(StrEnum):
    """Permission a role carries for a capability.

    Only ALLOW grants. PROHIBIT is an absolute veto: once any applicable
    role prohibits a capability no other role can grant it.
    """

    NOTSET = "notset"
    ALLOW = "allow"
    PREVENT = "prevent"
    PROHIBIT = "prohibit"


class CapType(StrEnum):
    """Kind of operation a capability guards."""

    READ = "read"
    WRITE = "write"


def split_capability(name: Any) -> tuple[str, str] | None:
    """Split "component:action" into its two parts.

    Returns None unless the name is a string with exactly one separator
    and a non-empty part on each side.
    """
    if not isinstance(name, str):
        return None
    parts = name.split(CAPABILITY_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


class CapabilityDefinition(BaseModel):
    """A validated capability declaration."""

    name: str
    captype: CapType
    component: str


class SkippedDeclaration(BaseModel):
    """A declaration that was not stored, with the reason."""

    source: str
    name: str
    reason: str


class FailedSource(BaseModel):
    """A declaration source that could not be processed at all."""

    source: str
    reason: str


class SeedOutcome(StrEnum):
    """What the administrator seeder did."""

    SEEDED = "seeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class SeedResult(BaseModel):
    """Outcome of seeding the default administrator role."""

    outcome: SeedOutcome
    role_id: int | None = None
    user_id: int | None = None
    reason: str | None = None


class SyncResult(BaseModel):
    """Outcome of a capability sync.

    ``ok`` is False only when a fatal error stopped the sync part-way; in
    every other case skipped declarations and failed sources are recorded
    and the sync still succeeds.
    """

    ok: bool = True
    synced: list[str] = Field(default_factory=list)
    skipped: list[SkippedDeclaration] = Field(default_factory=list)
    failed_sources: list[FailedSource] = Field(default_factory=list)
    seed: SeedResult | None = None
    admin_user_assigned: int | None = None
    reason: str | None = None


# ============================================================
# Role import / export
# ============================================================


class CapabilityPermissionEntry(BaseModel):
    """One capability permission inside an exported role."""

    name: str
    permission: str


class RoleTransfer(BaseModel):
    """A role as it appears in an export payload."""

    shortname: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    sortorder: int = DEFAULT_ROLE_SORTORDER
    capabilities: list[CapabilityPermissionEntry] = Field(default_factory=list)


class RoleTransferPayload(BaseModel):
    """Envelope for a role export or import."""

    exported_at: datetime | None = None
    include_admin: bool = True
    roles: list[RoleTransfer]


class ImportMode(StrEnum):
    """How an import treats capabilities of roles that already exist."""

    MERGE = "merge"
    REPLACE = "replace"


class ImportSummary(BaseModel):
    """Counts reported after a role import."""

    mode: ImportMode
    created: int = 0
    updated: int = 0
    capabilities_written: int = 0


# ============================================================
# API responses
# ============================================================


class CapabilityCheckResponse(BaseModel):
    """Answer to "does the current user hold this capability?"."""

    capability: str
    allowed: bool


class AuditEntryResponse(BaseModel):
    """Serialized audit log entry."""

    id: int
    actor_id: int | None
    user_id: int | None
    target_role_id: int | None
    capability: str | None
    action: str
    details: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}
