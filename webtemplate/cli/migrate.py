"""Database migration CLI.

Usage::

    web-template-migrate status
    web-template-migrate diff --name create_users
    web-template-migrate apply
    web-template-migrate apply --dry-run
    web-template-migrate validate
    web-template-migrate --env production status

Missing or unknown actions print usage and exit 1; any failure of the underlying
alembic command is logged and exits 1.
"""

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from typer.core import TyperGroup

from webtemplate.config import load_settings
from webtemplate.core.errors import ConfigLoadError, MigrationError
from webtemplate.infrastructure.migrations import (
    DEFAULT_TIMEOUT_SECONDS,
    MigrationConfig,
    MigrationManager,
    ensure_tool_installed,
)
from webtemplate.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


class _MigrateGroup(TyperGroup):
    """Exit 1 (not click's usage code 2) on an unknown action."""

    def resolve_command(self, ctx: typer.Context, args: list[str]):
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            typer.echo(f"Unknown action: {args[0]}", err=True)
            typer.echo(ctx.get_help())
            ctx.exit(1)
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="web-template-migrate",
    help="Database migration management (wraps the alembic CLI).",
    cls=_MigrateGroup,
    invoke_without_command=True,
    add_completion=False,
)


@app.callback()
def main(
    ctx: typer.Context,
    env: str = typer.Option("local", "--env", "-e", help="Environment name (local/production)"),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Settings file (default config/app.yaml)",
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT_SECONDS, "--timeout", help="Seconds before a migration command is killed",
    ),
):
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(1)

    try:
        ensure_tool_installed()
    except MigrationError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(1)

    try:
        settings = load_settings(config, environment=env)
    except ConfigLoadError as e:
        typer.echo(f"Failed to load configuration: {e.message}", err=True)
        raise typer.Exit(1)
    setup_logging(settings.logger)

    manager = MigrationManager(
        MigrationConfig(
            environment=env,
            timeout=timeout,
            settings_path=str(Path(config).resolve()) if config else None,
        ),
    )
    manager.init_migration_directory()
    ctx.obj = manager


def _fail(action: str, exc: MigrationError) -> NoReturn:
    logger.error(f"Migration {action} failed: {exc.message}", extra={"action": action})
    typer.echo(f"Error: {exc.message}", err=True)
    output = getattr(exc, "output", "")
    if output:
        typer.echo(output, err=True)
    raise typer.Exit(1)


@app.command("status")
def status(ctx: typer.Context):
    """Show the current migration status."""
    manager: MigrationManager = ctx.obj
    typer.echo("Checking migration status...")
    try:
        output = manager.check_migrations()
    except MigrationError as e:
        _fail("status", e)
    typer.echo(output)
    typer.echo("Migration status check complete")


@app.command("diff")
def diff(
    ctx: typer.Context,
    name: str = typer.Option("", "--name", "-n", help="Migration name"),
):
    """Generate a migration from model changes."""
    manager: MigrationManager = ctx.obj
    typer.echo(f"Generating migration: {name}" if name else "Generating migration...")
    try:
        output = manager.generate_migration(name)
    except MigrationError as e:
        _fail("diff", e)
    typer.echo(output)
    typer.echo("Migration file generated")


@app.command("apply")
def apply(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the SQL instead of running it"),
):
    """Apply pending migrations."""
    manager: MigrationManager = ctx.obj
    typer.echo("Rendering migration SQL (dry run)..." if dry_run else "Applying migrations...")
    try:
        output = manager.apply_migrations(dry_run=dry_run)
    except MigrationError as e:
        _fail("apply", e)
    typer.echo(output)
    typer.echo("Dry run complete" if dry_run else "Migrations applied")


@app.command("validate")
def validate(ctx: typer.Context):
    """Check that the migrations cover every model change."""
    manager: MigrationManager = ctx.obj
    typer.echo("Validating migrations...")
    try:
        output = manager.validate_migrations()
    except MigrationError as e:
        _fail("validate", e)
    typer.echo(output)
    typer.echo("Migrations are valid")


@app.command("reset")
def reset(ctx: typer.Context):
    """Print how to reset migration history. Performs no action."""
    manager: MigrationManager = ctx.obj
    typer.echo("Resetting migration history is destructive!")
    typer.echo(
        "Run manually: "
        + " ".join(manager.command("downgrade", "base")),
    )
    typer.echo("This reverts every revision and drops the tables they created.")


if __name__ == "__main__":
    app()
