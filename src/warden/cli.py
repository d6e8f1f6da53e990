"""Main Warden CLI application."""

import sys

import typer
from rich.console import Console

from warden import __version__
from warden.commands import roles
from warden.config import settings
from warden.core.logging import configure_logging


console = Console()

app = typer.Typer(
    name="warden",
    help="Manage roles, capabilities and role assignments.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(roles.app, name="roles")


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit."
    ),
) -> None:
    """Warden CLI - Manage roles and capabilities."""
    if version:
        console.print(f"[bold cyan]warden[/bold cyan] version {__version__}")
        raise typer.Exit()


def main() -> None:
    """Entry point for the CLI."""
    # Keep stdout for command output such as exports
    configure_logging(settings, file=sys.stderr)
    app()


if __name__ == "__main__":
    main()
