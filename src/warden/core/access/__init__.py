"""Access control: capability registry, roles and permission evaluation."""

from warden.core.access.declarations import (
    DeclarationRegistry,
    DeclarationSource,
    StaticDeclarationSource,
    YamlDeclarationSource,
    build_declaration_registry,
)
from warden.core.access.evaluator import AccessEvaluator, fold_permissions
from warden.core.access.models import (
    Capability,
    Role,
    RoleAssignment,
    RoleAuditLog,
    RoleCapability,
)
from warden.core.access.registry import CapabilityRegistry
from warden.core.access.schemas import CapType, Permission, SeedResult, SyncResult
from warden.core.access.seeder import AdministratorSeeder
from warden.core.access.service import RoleService
from warden.core.access.transfer import RoleTransferService


__all__ = [
    "AccessEvaluator",
    "AdministratorSeeder",
    "CapType",
    # Models
    "Capability",
    "CapabilityRegistry",
    # Declarations
    "DeclarationRegistry",
    "DeclarationSource",
    "Permission",
    "Role",
    "RoleAssignment",
    "RoleAuditLog",
    "RoleCapability",
    "RoleService",
    "RoleTransferService",
    "SeedResult",
    "StaticDeclarationSource",
    "SyncResult",
    "YamlDeclarationSource",
    "build_declaration_registry",
    "fold_permissions",
]
