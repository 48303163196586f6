"""CLI entry point for Warden."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from warden_core.broadcast import InvalidationEvent
from warden_core.config import WardenConfig, load_config
from warden_core.config.loader import DEFAULT_CONFIG_TEMPLATE
from warden_core.engine import CachedEvaluator, OwnershipResolver, build_broadcaster
from warden_core.plugins import PluginNotFoundError
from warden_core.rbac import Action, PermissionRequestError, Principal, Resource, Role, Scope

app = typer.Typer(
    name="warden",
    help="Role-based permission checks with cached decisions.",
)

config_app = typer.Typer(help="Manage Warden configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: WardenConfig | None = None

_LOG_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(cfg: WardenConfig) -> None:
    if cfg.log_format == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JsonLogFormatter())
    else:
        handler = RichHandler(rich_tracebacks=True, show_path=False)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(_LOG_LEVELS[cfg.log_level])


def _get_config() -> WardenConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to warden.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    configure_logging(_config)


def _local_engine(cfg: WardenConfig) -> CachedEvaluator:
    """An engine without a remote transport, for one-shot commands."""
    return CachedEvaluator(
        matrix=cfg.build_matrix(),
        ownership=OwnershipResolver(cfg.ownership.owner_fields),
        cache_enabled=cfg.cache.enabled,
    )


def _principal(role: str, user: str, active: bool = True) -> Principal:
    try:
        return Principal(id=user, role=Role.parse(role), active=active)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _scope_cell(scope: Scope | None) -> str:
    if scope is None:
        return "[dim]-[/dim]"
    if scope is Scope.all:
        return "[green]all[/green]"
    return "[yellow]own[/yellow]"


# ---------------------------------------------------------------------------
# Permission commands
# ---------------------------------------------------------------------------


@app.command()
def check(
    role: str = typer.Argument(..., help="Principal role: admin, editor or viewer"),
    resource: str = typer.Argument(..., help="Resource type, e.g. products"),
    action: str = typer.Argument(..., help="create, read, update, delete or manage"),
    user: str = typer.Option("cli-user", "--user", "-u", help="Principal id"),
    owner: str | None = typer.Option(None, "--owner", "-o", help="Owner id of the resource instance"),
    inactive: bool = typer.Option(False, "--inactive", help="Evaluate as a deactivated principal"),
) -> None:
    """Decide a single permission request. Exits 1 when denied."""
    cfg = _get_config()
    principal = _principal(role, user, active=not inactive)

    with _local_engine(cfg) as engine:
        try:
            allowed = engine.check_permission(principal, resource, action, owner)
        except PermissionRequestError as e:
            rprint(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1)

    target = f"{resource}:{action}" + (f" (owner {owner})" if owner else "")
    verdict = "[bold green]ALLOW[/bold green]" if allowed else "[bold red]DENY[/bold red]"
    panel_text = (
        f"{verdict}\n\n"
        f"[dim]Principal:[/dim] {principal.id} ({principal.role.value}{', inactive' if inactive else ''})\n"
        f"[dim]Request:[/dim]   {target}"
    )
    rprint(Panel(panel_text, title="Permission Check", border_style="green" if allowed else "red"))
    if not allowed:
        raise typer.Exit(1)


@app.command()
def resource(
    role: str = typer.Argument(..., help="Principal role"),
    resource_type: str = typer.Argument(..., metavar="RESOURCE", help="Resource type"),
    user: str = typer.Option("cli-user", "--user", "-u", help="Principal id"),
) -> None:
    """Summarize what a role may do with one resource type."""
    cfg = _get_config()
    principal = _principal(role, user)

    with _local_engine(cfg) as engine:
        try:
            perms = engine.get_resource_permissions(principal, resource_type)
        except PermissionRequestError as e:
            rprint(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1)

    table = Table(title=f"{principal.role.value} on {resource_type}")
    table.add_column("capability", style="cyan")
    table.add_column("allowed", justify="center")
    for name, value in (
        ("create", perms.can_create),
        ("read", perms.can_read),
        ("update", perms.can_update),
        ("delete", perms.can_delete),
        ("manage", perms.can_manage),
    ):
        table.add_row(name, "[green]yes[/green]" if value else "[red]no[/red]")
    rprint(table)
    rprint(f"[dim]Scope:[/dim] {perms.scope.value if perms.scope else 'none'}")


@app.command()
def matrix(
    role: str | None = typer.Option(None, "--role", "-r", help="Show a single role"),
) -> None:
    """Show the effective capability matrix."""
    cfg = _get_config()
    capability_matrix = cfg.build_matrix()

    if role is not None:
        try:
            roles = [Role.parse(role)]
        except ValueError as e:
            rprint(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1)
    else:
        roles = list(Role)

    for r in roles:
        table = Table(title=f"{r.value} (rank {r.rank})")
        table.add_column("resource", style="cyan")
        for a in Action:
            table.add_column(a.value, justify="center")
        for res in Resource.concrete():
            scopes = [capability_matrix.resolve(r, res, a) for a in Action]
            if all(s is None for s in scopes):
                continue
            table.add_row(res.value, *(_scope_cell(s) for s in scopes))
        rprint(table)


@app.command()
def invalidate(
    user: str | None = typer.Option(None, "--user", "-u", help="Invalidate one principal's decisions"),
    resource_id: str | None = typer.Option(None, "--resource", "-r", help="Invalidate a resource type or owner id"),
) -> None:
    """Broadcast a cache invalidation over the configured transport."""
    if user and resource_id:
        rprint("[red]Error:[/red] pass either --user or --resource, not both")
        raise typer.Exit(1)

    cfg = _get_config()
    if user:
        event = InvalidationEvent.user(user)
    elif resource_id:
        event = InvalidationEvent.resource(resource_id)
    else:
        event = InvalidationEvent.all()

    listen_off = cfg.model_copy(update={"broadcast": cfg.broadcast.model_copy(update={"listen": False})})
    try:
        broadcaster = build_broadcaster(listen_off)
    except (PluginNotFoundError, ValueError) as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    with broadcaster:
        broadcaster.publish(event)
    target = event.target_id or "all entries"
    rprint(f"[green]Published[/green] {event.scope.value} invalidation ({target}) via {cfg.broadcast.transport}")


# ---------------------------------------------------------------------------
# Config commands
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(mode="json"), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default warden.yaml in current directory."""
    target = Path("warden.yaml")
    if target.exists() and not force:
        rprint("[yellow]warden.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")
