"""Command group: warden roles - Manage roles and their capabilities."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.ext.asyncio import AsyncSession

from warden.config import settings
from warden.core.access.declarations import build_declaration_registry
from warden.core.access.evaluator import AccessEvaluator
from warden.core.access.registry import CapabilityRegistry
from warden.core.access.schemas import ImportMode, Permission
from warden.core.access.service import RoleService
from warden.core.access.transfer import RoleTransferService
from warden.core.constants import DEFAULT_ROLE_SORTORDER
from warden.core.database import async_session_factory
from warden.core.errors import AppException


console = Console()

app = typer.Typer(
    help="Manage roles, their capabilities and assignments.",
    no_args_is_help=True,
)

T = TypeVar("T")

PERMISSION_STYLES = {
    Permission.ALLOW.value: "green",
    Permission.PREVENT.value: "yellow",
    Permission.PROHIBIT.value: "red",
    Permission.NOTSET.value: "dim",
}


def _run(operation: Callable[[AsyncSession], Awaitable[T]], commit: bool = False) -> T:
    """Run an operation in its own session, reporting domain errors."""

    async def runner() -> T:
        async with async_session_factory() as session:
            result = await operation(session)
            if commit:
                await session.commit()
            return result

    try:
        return asyncio.run(runner())
    except AppException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command(name="list")
def list_roles() -> None:
    """List all roles, highest priority first."""
    roles = _run(lambda session: RoleService(session).list_roles())

    if not roles:
        console.print("[yellow]No roles defined.[/yellow]")
        return

    table = Table(title="Roles", show_header=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Shortname", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Sortorder", style="green", no_wrap=True)

    for role in roles:
        table.add_row(str(role.id), role.shortname, role.name, str(role.sortorder))

    console.print()
    console.print(table)
    console.print()


@app.command(name="create")
def create_role(
    shortname: str = typer.Argument(..., help="Unique short name of the role"),
    name: str = typer.Argument(..., help="Display name of the role"),
    sortorder: int = typer.Option(
        DEFAULT_ROLE_SORTORDER, "--sortorder", "-s", help="Priority (lower wins)"
    ),
    description: str = typer.Option("", "--description", "-d", help="Role description"),
) -> None:
    """Create a new role."""
    role = _run(
        lambda session: RoleService(session).create_role(
            shortname, name, sortorder=sortorder, description=description
        ),
        commit=True,
    )
    console.print(f"[green]✓[/green] Created role: {role.shortname} (id {role.id})")


@app.command(name="capabilities")
def list_capabilities(
    role: str | None = typer.Argument(
        None, help="Role id or shortname; shows that role's permissions"
    ),
) -> None:
    """List registered capabilities, optionally with a role's permissions."""
    if role is None:
        capabilities = _run(lambda session: RoleService(session).list_capabilities())
        rows = [(c.name, c.captype, c.component, None) for c in capabilities]
    else:
        pairs = _run(lambda session: RoleService(session).role_capabilities(role))
        rows = [(c.name, c.captype, c.component, p.value) for c, p in pairs]

    if not rows:
        console.print("[yellow]No capabilities registered. Run 'warden roles sync'.[/yellow]")
        return

    table = Table(title="Capabilities", show_header=True)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Component", no_wrap=True)
    if role is not None:
        table.add_column("Permission", no_wrap=True)

    for name, captype, component, permission in rows:
        row = [name, captype, component]
        if permission is not None:
            style = PERMISSION_STYLES.get(permission, "")
            row.append(f"[{style}]{permission}[/{style}]")
        table.add_row(*row)

    console.print()
    console.print(table)
    console.print()


@app.command(name="grant")
def grant(
    role: str = typer.Argument(..., help="Role id or shortname"),
    capability: str = typer.Argument(..., help="Capability name, component:action"),
    permission: str = typer.Option(
        Permission.ALLOW.value,
        "--permission",
        "-p",
        help="allow, prevent, prohibit or notset",
    ),
) -> None:
    """Set a role's permission for a capability."""
    _run(
        lambda session: RoleService(session).set_permission(role, capability, permission),
        commit=True,
    )
    console.print(f"[green]✓[/green] {role}: {capability} = {permission}")


@app.command(name="revoke")
def revoke(
    role: str = typer.Argument(..., help="Role id or shortname"),
    capability: str = typer.Argument(..., help="Capability name, component:action"),
) -> None:
    """Remove a role's permission for a capability."""
    removed = _run(
        lambda session: RoleService(session).revoke(role, capability),
        commit=True,
    )
    if removed:
        console.print(f"[green]✓[/green] Revoked {capability} from {role}")
    else:
        console.print(f"[yellow]Warning:[/yellow] {role} has no permission for {capability}")


@app.command(name="assign")
def assign(
    user_id: int = typer.Argument(..., help="User id"),
    role: str = typer.Argument(..., help="Role id or shortname"),
    component: str | None = typer.Option(
        None, "--component", "-c", help="Limit the assignment to one component"
    ),
) -> None:
    """Assign a role to a user."""
    _run(
        lambda session: RoleService(session).assign(user_id, role, component=component),
        commit=True,
    )
    scope = f"component {component}" if component else "globally"
    console.print(f"[green]✓[/green] Assigned {role} to user {user_id} {scope}")


@app.command(name="unassign")
def unassign(
    user_id: int = typer.Argument(..., help="User id"),
    role: str = typer.Argument(..., help="Role id or shortname"),
    component: str | None = typer.Option(
        None, "--component", "-c", help="Component of the assignment to remove"
    ),
) -> None:
    """Remove a role assignment from a user."""
    removed = _run(
        lambda session: RoleService(session).unassign(user_id, role, component=component),
        commit=True,
    )
    if removed:
        console.print(f"[green]✓[/green] Unassigned {role} from user {user_id}")
    else:
        console.print(f"[yellow]Warning:[/yellow] User {user_id} has no such assignment")


@app.command(name="sync")
def sync(
    modules_dir: Path | None = typer.Option(
        None,
        "--modules-dir",
        "-m",
        help="Directory of modules with access.yaml files",
    ),
) -> None:
    """Register declared capabilities and bootstrap the admin role."""
    declarations = build_declaration_registry(modules_dir or settings.access_modules_dir)
    result = _run(
        lambda session: CapabilityRegistry(
            session, declarations, admin_username=settings.admin_username
        ).sync_all()
    )

    console.print(f"[green]✓[/green] Synced {len(result.synced)} capabilities")
    for skipped in result.skipped:
        console.print(
            f"[yellow]Skipped:[/yellow] {skipped.source}: {skipped.name} ({skipped.reason})"
        )
    for failed in result.failed_sources:
        console.print(f"[red]Failed source:[/red] {failed.source}: {failed.reason}")
    if result.seed is not None and result.seed.outcome == "seeded":
        console.print(f"[green]✓[/green] Seeded admin role (id {result.seed.role_id})")
    if result.admin_user_assigned is not None:
        console.print(
            f"[green]✓[/green] Assigned admin role to user {result.admin_user_assigned}"
        )

    if not result.ok:
        console.print(f"[red]Error:[/red] {result.reason}")
        raise typer.Exit(1)


@app.command(name="check")
def check(
    user_id: int = typer.Argument(..., help="User id"),
    capability: str = typer.Argument(..., help="Capability name, component:action"),
) -> None:
    """Check whether a user holds a capability.

    Exits with status 1 when the capability is not held.
    """

    async def evaluate(session: AsyncSession) -> tuple[Permission, bool]:
        evaluator = AccessEvaluator(session)
        permission = await evaluator.resolve_permission(capability, user_id)
        allowed = await evaluator.user_has_capability(capability, user_id)
        return permission, allowed

    permission, allowed = _run(evaluate)
    style = PERMISSION_STYLES[permission.value]
    verdict = "[green]allowed[/green]" if allowed else "[red]denied[/red]"
    console.print(
        f"User {user_id} {capability}: {verdict} ([{style}]{permission.value}[/{style}])"
    )
    if not allowed:
        raise typer.Exit(1)


@app.command(name="export")
def export_roles(
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the export to this file"
    ),
    include_admin: bool = typer.Option(
        True, "--include-admin/--no-admin", help="Include the admin role"
    ),
) -> None:
    """Export roles and their permissions as JSON."""
    payload = _run(
        lambda session: RoleTransferService(session).export_roles(include_admin=include_admin),
        commit=True,
    )
    content = payload.model_dump_json(indent=2)

    if output is None:
        typer.echo(content)
        return

    output.write_text(content + "\n", encoding="utf-8")
    console.print(f"[green]✓[/green] Exported {len(payload.roles)} roles to {output}")


@app.command(name="import")
def import_roles(
    path: Path = typer.Argument(..., help="JSON file produced by 'warden roles export'"),
    mode: ImportMode = typer.Option(
        ImportMode.MERGE, "--mode", help="merge keeps existing permissions, replace clears them"
    ),
) -> None:
    """Import roles and their permissions from JSON."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] Cannot read {path}: {e}")
        raise typer.Exit(1)

    summary = _run(
        lambda session: RoleTransferService(session).import_roles(data, mode),
        commit=True,
    )
    console.print(
        f"[green]✓[/green] Imported roles ({summary.mode.value}): "
        f"{summary.created} created, {summary.updated} updated, "
        f"{summary.capabilities_written} permissions written"
    )
