"""
Helmsman CLI

Command-line interface for the Helmsman service.

Commands:
    helmsman serve                       — Start API server
    helmsman scan                        — Detect installed tools
    helmsman tools [--installed]         — List known tools from the last scan
    helmsman classify "command"          — Show the risk tier of a command
    helmsman actions [--status pending]  — List recorded actions
    helmsman resolve ID --approve/--deny — Resolve a pending action
    helmsman organize PATH [--dry-run]   — Sort a directory into category folders
    helmsman status                      — Show service status

Usage:
    pip install helmsman
    helmsman scan
"""

from __future__ import annotations

import asyncio
import json
import sys

import click

from helmsman import Helmsman, __version__
from helmsman.config import Settings
from helmsman.core.models import ActionStatus
from helmsman.engine.classifier import classify_tier
from helmsman.exceptions import HelmsmanError
from helmsman.logging import configure_logging
from helmsman.tools.builtin.organizer import format_report, organize_directory


def _service() -> Helmsman:
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)
    return Helmsman(settings)


@click.group()
@click.version_option(version=__version__, prog_name="helmsman")
def cli() -> None:
    """Helmsman — Approval-Gated IT Automation"""
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HELMSMAN_HOST)")
@click.option("--port", default=None, type=int, help="Port number (default: HELMSMAN_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on changes")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the Helmsman API server."""
    import uvicorn

    settings = Settings.from_env()
    host = host or settings.host
    port = port or settings.port

    _print_header("Helmsman API Server")
    print(f"  Binding: {host}:{port}")
    print(f"  Reload: {'enabled' if reload else 'disabled'}")
    print()

    uvicorn.run(
        "helmsman.api.server:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def scan(json_output: bool) -> None:
    """Detect which tools are installed and cache the result."""
    service = _service()
    try:
        tools = asyncio.run(service.scan_tools())
    finally:
        service.close()

    if json_output:
        print(json.dumps([t.model_dump(mode="json") for t in tools], indent=2))
        return

    _print_header("Tool Scan")
    for tool in tools:
        mark = "x" if tool.installed else " "
        version = tool.version or ""
        print(f"  [{mark}] {tool.id:24s} {tool.domain.value:14s} {version}")
    installed = sum(1 for t in tools if t.installed)
    print(f"\n  Installed: {installed}/{len(tools)}")


@cli.command()
@click.option("--installed", is_flag=True, help="Only show installed tools")
def tools(installed: bool) -> None:
    """List tools known from the last scan."""
    service = _service()
    try:
        service.registry.load_from_repository(service.repository)
        found = service.registry.get_installed_tools() if installed else service.registry.get_all_tools()
    finally:
        service.close()

    _print_header("Installed Tools" if installed else "Known Tools")
    if not found:
        print("  No tools found. Run: helmsman scan")
        return
    for tool in found:
        state = "installed" if tool.installed else "missing"
        print(f"  {tool.id:24s} {tool.domain.value:14s} {state:10s} {tool.name}")


@cli.command()
@click.argument("command")
def classify(command: str) -> None:
    """Show the risk tier a shell command would be given."""
    print(classify_tier(command).value)


@cli.command()
@click.option(
    "--status",
    "status_filter",
    type=click.Choice([s.value for s in ActionStatus]),
    default=None,
    help="Filter by status",
)
@click.option("--limit", default=50, type=int, help="Maximum rows")
def actions(status_filter: str | None, limit: int) -> None:
    """List recorded actions, newest first."""
    service = _service()
    try:
        status = ActionStatus(status_filter) if status_filter else None
        rows = service.repository.list_by_status(status, limit=limit)
    finally:
        service.close()

    _print_header("Actions")
    if not rows:
        print("  No actions found.")
        return
    for action in rows:
        print(
            f"  {action.id[:12]}  [{action.tier.value:6s}] [{action.status.value:8s}]  "
            f"{action.module:15s} {action.command[:60]}"
        )


@cli.command()
@click.argument("action_id")
@click.option("--approve/--deny", required=True, help="Approve and execute, or deny")
def resolve(action_id: str, approve: bool) -> None:
    """Approve or deny a pending action."""
    service = _service()
    try:
        action = asyncio.run(service.resolve(action_id, approve))
    except HelmsmanError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        service.close()

    print(f"  {action.id}: {action.status.value}")
    if action.result:
        print(action.result)
    if action.error:
        print(f"  Error: {action.error}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--dry-run", is_flag=True, help="Preview without moving files")
def organize(path: str, dry_run: bool) -> None:
    """Sort files in PATH into category folders by extension."""
    result = organize_directory(path, dry_run=dry_run)
    print(format_report(path, result, dry_run))


@cli.command()
def status() -> None:
    """Show service status."""
    service = _service()
    try:
        service.registry.load_from_repository(service.repository)
        info = service.status()
    finally:
        service.close()

    _print_header("Helmsman Status")
    print(f"  Version: {info['version']}")
    print(f"  Python: {sys.version.split()[0]}")
    print(f"  Database: {service.settings.db_url}")
    print(f"  Tools: {info['tools_installed']} installed / {info['tools_known']} known")
    print(f"  Domains: {', '.join(info['domains'])}")
    print("\n  Actions:")
    for name, count in sorted(info["actions"].items()):
        print(f"    {name:10s} {count}")


def _print_header(title: str) -> None:
    """Print a formatted header."""
    print(f"\n  {'=' * 60}")
    print(f"  {title}")
    print(f"  {'=' * 60}\n")


if __name__ == "__main__":
    cli()
