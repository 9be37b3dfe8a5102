"""CLI for planning and running database resets.

Usage:
    db-reset profiles
    DB_RESET_PROFILE=local db-reset plan
    db-reset plan --profile local --config ci/db-reset.toml
    db-reset reset --profile local --confirm

Commands:
    profiles  - List configured profiles
    plan      - Show deletion order, cyclic tables and the rendered SQL
    reset     - Empty every table of the selected profile
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table as RichTable
from sqlalchemy.exc import SQLAlchemyError

from db_reset.config.loader import get_profile, load_reset_config
from db_reset.config.models import resolve_url
from db_reset.engine import create_async_engine_pooled, normalize_url
from db_reset.errors import DbResetError, ExecutionError
from db_reset.respawner import Respawner

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def _config_path(args: argparse.Namespace) -> Path | None:
    return Path(args.config) if getattr(args, "config", None) else None


async def _build_respawner(args: argparse.Namespace) -> tuple[str, str, Respawner]:
    """Load config, connect to the selected profile and build the plan.

    Returns:
        ``(profile_name, url, respawner)``.
    """
    config = load_reset_config(_config_path(args))
    name, profile = get_profile(config, getattr(args, "profile", None))
    options = config.reset.to_options(profile)
    url = normalize_url(resolve_url(profile))

    engine = create_async_engine_pooled(url)
    try:
        async with engine.connect() as conn:
            respawner = await Respawner.create(conn, options)
    finally:
        await engine.dispose()
    return name, url, respawner


async def _load_plan(args: argparse.Namespace) -> tuple[str, str, Respawner] | None:
    """Build the plan, printing the error and returning ``None`` on failure."""
    try:
        return await _build_respawner(args)
    except KeyError as e:
        console.print(f"[bold red]x[/bold red] {e.args[0]}")
    except (FileNotFoundError, ValueError, DbResetError) as e:
        console.print(f"[bold red]x[/bold red] {e}")
    except (SQLAlchemyError, OSError) as e:
        console.print(f"\n[bold red]Error:[/bold red] Connection failed: {e}")
    return None


def _print_plan(respawner: Respawner) -> None:
    graph = respawner.graph

    table = RichTable(title="Deletion Order", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Table")
    for i, t in enumerate(graph.to_delete, start=1):
        table.add_row(str(i), str(t))
    console.print(table)

    if graph.cyclical_tables:
        console.print(
            "\n[yellow]Cyclic tables:[/yellow] "
            + ", ".join(str(t) for t in sorted(graph.cyclical_tables))
        )
        for rel in graph.cyclical_table_relationships:
            console.print(f"  [dim]-[/dim] {rel}")

    console.print("\n[bold]Delete SQL:[/bold]")
    console.print(Syntax(respawner.delete_sql or "", "sql", word_wrap=True))
    if respawner.reseed_sql:
        console.print("[bold]Reseed SQL:[/bold]")
        console.print(Syntax(respawner.reseed_sql, "sql", word_wrap=True))


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_plan(args: argparse.Namespace) -> int:
    """Async implementation for plan command.

    Returns:
        0 on success, 1 on failure.
    """
    loaded = await _load_plan(args)
    if loaded is None:
        return 1
    name, _, respawner = loaded

    console.print(f"Reset plan for profile: [bold cyan]{name}[/bold cyan]\n")
    _print_plan(respawner)
    return 0


async def _async_reset(args: argparse.Namespace) -> int:
    """Async implementation for reset command.

    Returns:
        0 on success, 1 on failure.
    """
    if not args.confirm:
        console.print("[yellow]Reset deletes every row in the target database.[/yellow]")
        console.print("[dim]Re-run with[/dim] [cyan]--confirm[/cyan] [dim]to proceed.[/dim]")
        return 1

    loaded = await _load_plan(args)
    if loaded is None:
        return 1
    name, url, respawner = loaded

    console.print(f"Resetting profile: [bold cyan]{name}[/bold cyan]")

    engine = create_async_engine_pooled(url)
    try:
        async with engine.connect() as conn:
            await respawner.reset(conn)
    except ExecutionError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        console.print("\n[bold]Failing SQL:[/bold]")
        console.print(Syntax(e.sql, "sql", word_wrap=True))
        return 1
    except DbResetError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    except (SQLAlchemyError, OSError) as e:
        console.print(f"\n[bold red]Error:[/bold red] Connection failed: {e}")
        return 1
    finally:
        await engine.dispose()

    console.print(
        f"[bold green]v[/bold green] Reset {len(respawner.graph.delete_sequence)} tables"
    )
    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if the config file is missing or invalid.
    """
    try:
        config = load_reset_config(_config_path(args))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = RichTable(title="Reset Profiles", show_header=True, header_style="bold")
    table.add_column("Profile")
    table.add_column("Adapter")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        table.add_row(name, profile.adapter, profile.description or "")

    console.print(table)
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Show the reset plan. Wraps the async implementation with ``asyncio.run()``."""
    return asyncio.run(_async_plan(args))


def cmd_reset(args: argparse.Namespace) -> int:
    """Run a reset. Wraps the async implementation with ``asyncio.run()``."""
    return asyncio.run(_async_reset(args))


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-reset",
        description="Empty a test database in foreign-key safe order",
    )
    parser.add_argument(
        "--config",
        help="Path to db-reset.toml (default: ./db-reset.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output, including rendered SQL",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_profiles = subparsers.add_parser("profiles", help="List configured profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_plan = subparsers.add_parser(
        "plan",
        help="Show deletion order, cyclic tables and rendered SQL",
    )
    p_plan.add_argument("--profile", "-p", help="Profile name (or DB_RESET_PROFILE)")
    p_plan.set_defaults(func=cmd_plan)

    p_reset = subparsers.add_parser("reset", help="Empty every table")
    p_reset.add_argument("--profile", "-p", help="Profile name (or DB_RESET_PROFILE)")
    p_reset.add_argument(
        "--confirm",
        action="store_true",
        help="Actually perform the reset",
    )
    p_reset.set_defaults(func=cmd_reset)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
