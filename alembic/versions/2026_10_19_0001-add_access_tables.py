"""add_access_tables

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 00:01:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    # Create capabilities table (keyed by name)
    op.create_table(
        "capabilities",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("captype", sa.String(length=10), nullable=False),
        sa.Column("component", sa.String(length=100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("name"),
    )
    op.create_index(
        op.f("ix_capabilities_component"), "capabilities", ["component"], unique=False
    )

    # Create roles table
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("shortname", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("sortorder", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_roles_shortname"), "roles", ["shortname"], unique=True)

    # Create role_capabilities table
    op.create_table(
        "role_capabilities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("capability", sa.String(length=255), nullable=False),
        sa.Column("permission", sa.String(length=10), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["role_id"],
            ["roles.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("role_id", "capability", name="uq_role_capability"),
    )
    op.create_index(
        op.f("ix_role_capabilities_role_id"), "role_capabilities", ["role_id"], unique=False
    )
    op.create_index(
        op.f("ix_role_capabilities_capability"),
        "role_capabilities",
        ["capability"],
        unique=False,
    )

    # Create role_assignments table
    op.create_table(
        "role_assignments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("component", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["role_id"],
            ["roles.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role_id", "component", name="uq_role_assignment"),
    )
    op.create_index(
        op.f("ix_role_assignments_user_id"), "role_assignments", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_role_assignments_role_id"), "role_assignments", ["role_id"], unique=False
    )

    # Create role_audit_log table
    op.create_table(
        "role_audit_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("target_role_id", sa.Integer(), nullable=True),
        sa.Column("capability", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_role_audit_log_actor_id"), "role_audit_log", ["actor_id"], unique=False
    )
    op.create_index(
        op.f("ix_role_audit_log_action"), "role_audit_log", ["action"], unique=False
    )
    op.create_index(
        op.f("ix_role_audit_log_created_at"), "role_audit_log", ["created_at"], unique=False
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("role_audit_log")
    op.drop_table("role_assignments")
    op.drop_table("role_capabilities")
    op.drop_table("roles")
    op.drop_table("capabilities")
    op.drop_table("users")
