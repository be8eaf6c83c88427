import logging
import os
import signal
import sys
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from quicksub.config.logging_config import configure_logging, get_logger

console = Console()
log = get_logger(__name__)


@contextmanager
def _cancel_on_interrupt(manager):
    """Turn Ctrl+C into a cooperative cancellation of running waits."""

    def handler(signum, frame):
        console.print("[yellow]Interrupt received, cancelling...[/]")
        manager.ctx.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _get_manager(ctx: click.Context):
    from quicksub.provider.manager import ResourceManager

    return ResourceManager(config_path=ctx.obj.get("config_path"))


def _fail(e: Exception) -> None:
    console.print(f"[red]Error: {e}[/]")
    if log.isEnabledFor(logging.DEBUG):
        console.print(traceback.format_exc(), markup=False, highlight=False)
    sys.exit(1)


def _print_results(results: Dict[str, Any], title: str, success_message: str) -> None:
    if results.get("changes"):
        console.print("[bold yellow]Changes:[/]")
        for change in results["changes"]:
            console.print(f"  • {change}")
        console.print()

    console.print(f"[bold]{title}:[/]")
    for step in results.get("steps", []):
        console.print(f"  {step}")

    if results.get("errors"):
        console.print()
        console.print("[bold red]Errors:[/]")
        for error in results["errors"]:
            console.print(f"  ❌ {error}")
        sys.exit(1)

    if results["status"] == "success":
        console.print()
        console.print(f"[bold green]✅ {success_message}[/]")


@click.group()
@click.version_option(package_name="quicksub")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to resources.yaml (default: QUICKSUB_CONFIG_PATH or the per-user config directory).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging (DEBUG level).")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """quicksub - manage QuickSight account subscriptions declaratively."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if verbose:
        # Later get_logger calls re-read the level from the environment
        os.environ["LOG_LEVEL"] = "DEBUG"
        configure_logging(level="DEBUG")


@cli.command("init")
@click.pass_context
def init(ctx: click.Context):
    """Initialize a new resources.yaml configuration file."""
    from quicksub.config.resources import get_resource_config_path, init_resource_config

    try:
        config_path = ctx.obj.get("config_path") or get_resource_config_path()
        overwrite = False

        if config_path.exists():
            if not click.confirm(f"Resource configuration already exists at {config_path}. Overwrite?"):
                console.print("[yellow]Operation cancelled[/]")
                return
            overwrite = True

        init_resource_config(config_path, overwrite=overwrite)

        console.print(f"[green]✅ Created resources.yaml at {config_path}[/]")
        console.print()
        console.print("[cyan]Next steps:[/]")
        console.print("  1. Add a quicksight_account_subscription resource to resources.yaml")
        console.print("  2. Run 'quicksub plan <name>' to preview changes")
        console.print("  3. Run 'quicksub apply <name>' to create the subscription")

    except Exception as e:
        _fail(e)


@cli.command("list")
@click.pass_context
def list_resources(ctx: click.Context):
    """List all declared resources and their recorded status."""
    try:
        manager = _get_manager(ctx)
        resources = manager.list_resources()

        if not resources:
            console.print("[yellow]No resources configured[/]")
            return

        table = Table(title="Resources")
        table.add_column("Name", style="cyan")
        table.add_column("Account Name", style="green")
        table.add_column("ID", style="magenta")
        table.add_column("Status", style="yellow")
        table.add_column("Last Applied", style="blue")

        for resource in resources:
            status = resource["status"] or "unknown"
            if resource["tainted"]:
                status = f"{status} (tainted)"
            last_applied = resource["last_applied"]
            table.add_row(
                resource["name"],
                resource["account_name"],
                resource["id"] or "-",
                status,
                last_applied.strftime("%Y-%m-%d %H:%M") if last_applied else "Never",
            )

        console.print(table)

    except FileNotFoundError as e:
        console.print(f"[yellow]{e}[/]")
    except Exception as e:
        _fail(e)


@cli.command("show")
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str):
    """Display configuration and recorded state of a resource."""
    try:
        manager = _get_manager(ctx)
        info = manager.show(name)

        content = [f"[bold cyan]Resource: {name}[/]", f"[cyan]Type: {info['type']}[/]", ""]

        content.append("[bold]Arguments:[/]")
        for key, value in info["arguments"].items():
            content.append(f"  {key}: {value}")
        content.append("")

        content.append("[bold]Timeouts:[/]")
        for key, value in info["timeouts"].items():
            content.append(f"  {key}: {value:g}s")
        content.append("")

        state = info["state"]
        content.append("[bold]State:[/]")
        content.append(f"  ID: {state.get('id') or 'not created'}")
        if state.get("tainted"):
            content.append("  [red]Tainted[/]")
        for key, value in state.get("attributes", {}).items():
            content.append(f"  {key}: {value}")
        if state.get("last_applied"):
            content.append(f"  Last applied: {state['last_applied']}")

        console.print(Panel("\n".join(content), border_style="cyan"))

    except KeyError:
        console.print(f"[red]Resource '{name}' not found[/]")
        sys.exit(1)
    except Exception as e:
        _fail(e)


@cli.command("plan")
@click.argument("name")
@click.pass_context
def plan(ctx: click.Context, name: str):
    """Show what changes apply would make."""
    try:
        manager = _get_manager(ctx)
        result = manager.plan(name)

        console.print(f"[bold cyan]Plan: {result['resource_name']}[/]")
        console.print()

        if result.get("changes"):
            console.print("[bold yellow]Changes:[/]")
            for change in result["changes"]:
                console.print(f"  • {change}")
            console.print()

        if result.get("will_create"):
            console.print("[bold green]Will Create:[/]")
            for item in result["will_create"]:
                console.print(f"  + {item}")
            console.print()

        if result.get("will_replace"):
            console.print("[bold red]Will Replace:[/]")
            for item in result["will_replace"]:
                console.print(f"  -/+ {item}")
            console.print()

        if not result.get("will_create") and not result.get("will_replace"):
            console.print("[green]✅ No changes - resource is up to date[/]")

    except KeyError:
        console.print(f"[red]Resource '{name}' not found[/]")
        sys.exit(1)
    except Exception as e:
        _fail(e)


@cli.command("apply")
@click.argument("name")
@click.option("--dry-run", is_flag=True, help="Show what would be done without executing")
@click.pass_context
def apply(ctx: click.Context, name: str, dry_run: bool):
    """Create or replace a resource to match its configuration."""
    if dry_run:
        ctx.invoke(plan, name=name)
        return

    try:
        manager = _get_manager(ctx)
        console.print(f"[bold cyan]Applying: {name}[/]")
        console.print()

        with _cancel_on_interrupt(manager):
            results = manager.apply(name)

        _print_results(results, "Apply Steps", "Apply complete")

    except KeyError:
        console.print(f"[red]Resource '{name}' not found[/]")
        sys.exit(1)
    except Exception as e:
        _fail(e)


@cli.command("refresh")
@click.argument("name")
@click.pass_context
def refresh(ctx: click.Context, name: str):
    """Re-read remote state and record drift."""
    try:
        manager = _get_manager(ctx)
        results = manager.refresh(name)
        _print_results(results, "Refresh Steps", "Refresh complete")

    except KeyError:
        console.print(f"[red]Resource '{name}' not found[/]")
        sys.exit(1)
    except Exception as e:
        _fail(e)


@cli.command("destroy")
@click.argument("name")
@click.option("--force", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def destroy(ctx: click.Context, name: str, force: bool):
    """Unsubscribe the account and clear recorded state."""
    try:
        manager = _get_manager(ctx)

        if not force:
            if not click.confirm(f"Are you sure you want to destroy '{name}'? This unsubscribes the account."):
                console.print("[yellow]Operation cancelled[/]")
                return

        console.print(f"[bold yellow]Destroying: {name}[/]")
        console.print()

        with _cancel_on_interrupt(manager):
            results = manager.destroy(name)

        _print_results(results, "Destruction Steps", "Resource destroyed")

    except KeyError:
        console.print(f"[red]Resource '{name}' not found[/]")
        sys.exit(1)
    except Exception as e:
        _fail(e)


if __name__ == "__main__":
    cli()
