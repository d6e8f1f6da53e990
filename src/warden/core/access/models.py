"""Access control database models.

This module defines the RBAC (Role-Based Access Control) models:
- Capability: A named permission point owned by a component
- Role: A named bundle of capability permissions
- RoleCapability: The permission a role carries for one capability
- RoleAssignment: Binds a user to a role, globally or for one component
- RoleAuditLog: Trail of role and assignment changes
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warden.core.constants import (
    DEFAULT_ROLE_SORTORDER,
    MAX_AUDIT_ACTION_LENGTH,
    MAX_CAPABILITY_NAME_LENGTH,
    MAX_CAPTYPE_LENGTH,
    MAX_COMPONENT_LENGTH,
    MAX_IPV6_LENGTH,
    MAX_PERMISSION_LENGTH,
    MAX_ROLE_NAME_LENGTH,
    MAX_ROLE_SHORTNAME_LENGTH,
)
from warden.core.database.base import Base, IdMixin, TimestampMixin


class Capability(Base, TimestampMixin):
    """A named permission point.

    Capabilities are registered by the capability sync from the
    declarations of core components and installed modules. They are never
    deleted by normal operation.

    Attributes:
        name: "<component>:<action>", globally unique
        captype: "read" or "write"
        component: The part of the name before the separator
    """

    __tablename__ = "capabilities"

    name: Mapped[str] = mapped_column(
        String(MAX_CAPABILITY_NAME_LENGTH),
        primary_key=True,
    )
    captype: Mapped[str] = mapped_column(
        String(MAX_CAPTYPE_LENGTH),
        nullable=False,
    )
    component: Mapped[str] = mapped_column(
        String(MAX_COMPONENT_LENGTH),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Capability({self.name}, captype={self.captype})>"


class Role(Base, IdMixin, TimestampMixin):
    """A named bundle of capability permissions.

    Lower sortorder means higher priority when several global roles
    apply to the same user.
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        nullable=False,
    )
    shortname: Mapped[str] = mapped_column(
        String(MAX_ROLE_SHORTNAME_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
    )
    sortorder: Mapped[int] = mapped_column(
        Integer,
        default=DEFAULT_ROLE_SORTORDER,
        nullable=False,
    )

    # Relationships
    capabilities: Mapped[list["RoleCapability"]] = relationship(
        "RoleCapability",
        back_populates="role",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, shortname={self.shortname}, sortorder={self.sortorder})>"


class RoleCapability(Base, IdMixin, TimestampMixin):
    """The permission a role carries for one capability.

    The capability name is not a foreign key: permissions may be written
    for capabilities that a module has not registered yet.
    """

    __tablename__ = "role_capabilities"
    __table_args__ = (
        UniqueConstraint("role_id", "capability", name="uq_role_capability"),
    )

    role_id: Mapped[int] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    capability: Mapped[str] = mapped_column(
        String(MAX_CAPABILITY_NAME_LENGTH),
        nullable=False,
        index=True,
    )
    permission: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_LENGTH),
        nullable=False,
    )

    role: Mapped["Role"] = relationship("Role", back_populates="capabilities")

    def __repr__(self) -> str:
        return (
            f"<RoleCapability(role_id={self.role_id}, "
            f"capability={self.capability}, permission={self.permission})>"
        )


class RoleAssignment(Base, IdMixin, TimestampMixin):
    """Binds a user to a role.

    A null component makes the assignment global; otherwise it only takes
    part in checks for that component's capabilities.
    """

    __tablename__ = "role_assignments"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "role_id", "component", name="uq_role_assignment"
        ),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[int] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    component: Mapped[str | None] = mapped_column(
        String(MAX_COMPONENT_LENGTH),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<RoleAssignment(user_id={self.user_id}, role_id={self.role_id}, "
            f"component={self.component})>"
        )


class RoleAuditLog(Base, IdMixin):
    """Audit entry for a change to roles, permissions or assignments.

    Attributes:
        actor_id: The user who made the change (null for system actions)
        user_id: The user affected by the change, if any
        target_role_id: The role affected by the change, if any
        capability: The capability affected by the change, if any
        action: Type of change (role_create, role_assign, ...)
        details: Additional context about the change
        ip_address: Client IP address
    """

    __tablename__ = "role_audit_log"

    actor_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        index=True,
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    target_role_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    capability: Mapped[str | None] = mapped_column(
        String(MAX_CAPABILITY_NAME_LENGTH),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(
        String(MAX_AUDIT_ACTION_LENGTH),
        nullable=False,
        index=True,
    )
    details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )
    ip_address: Mapped[str | None] = mapped_column(
        String(MAX_IPV6_LENGTH),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<RoleAuditLog(id={self.id}, action={self.action}, actor_id={self.actor_id})>"
