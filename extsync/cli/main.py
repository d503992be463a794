"""Main CLI application for extsync."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from extsync import __version__
from extsync.cli.progress import RichProgressReporter
from extsync.config.parser import (
    ConfigError,
    load_desired_extensions,
    load_sync_config,
    save_extension_list,
)
from extsync.config.schemas import ExtensionRecord, SyncConfig
from extsync.core.sync import ExtensionSynchronizer, ProgressReporter, SyncOutcome
from extsync.registry.base import RegistryError
from extsync.registry.factory import UnsupportedProtocolError

# Create the main Typer app
app = typer.Typer(
    name="extsync",
    help="Keep installed editor extensions in sync with a desired list",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

# Set up logger for the extsync package
logger = logging.getLogger("extsync")

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to extsync.yaml (defaults to ./extsync.yaml)"),
]
ExtensionsDirOption = Annotated[
    Path | None,
    typer.Option("--extensions-dir", "-d", help="Directory holding installed extensions"),
]
RegistryOption = Annotated[
    str | None,
    typer.Option("--registry", "-r", help="Gallery URL or file: directory of .vsix archives"),
]
ProxyOption = Annotated[
    str | None,
    typer.Option("--proxy", help="Upstream HTTP/HTTPS proxy URL"),
]
AutoUpdateOption = Annotated[
    bool | None,
    typer.Option(
        "--auto-update/--no-auto-update",
        help="Install the latest registry version instead of the listed one",
    ),
]
ExcludeOption = Annotated[
    list[str] | None,
    typer.Option("--exclude", "-x", help="Glob pattern of extensions never to remove (repeatable)"),
]


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    # Only add handler if not already configured
    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def get_config(
    config_path: Path | None,
    extensions_dir: Path | None = None,
    registry: str | None = None,
    proxy: str | None = None,
    auto_update: bool | None = None,
    exclude: list[str] | None = None,
) -> SyncConfig:
    """Load sync configuration and apply command-line overrides."""
    try:
        config = load_sync_config(config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    updates: dict[str, object] = {}
    if extensions_dir is not None:
        updates["extensions_dir"] = extensions_dir.expanduser()
    if registry is not None:
        updates["registry"] = registry
    if proxy is not None:
        updates["proxy"] = proxy
    if auto_update is not None:
        updates["auto_update_extensions"] = auto_update
    if exclude:
        updates["excluded_extensions"] = [*config.excluded_extensions, *exclude]
    return config.model_copy(update=updates)


def get_synchronizer(
    config: SyncConfig, reporter: ProgressReporter | None = None
) -> ExtensionSynchronizer:
    """Build the synchronizer, exiting on registry configuration errors."""
    try:
        return ExtensionSynchronizer.from_config(config, reporter=reporter)
    except (RegistryError, UnsupportedProtocolError) as e:
        print_error(str(e))
        raise typer.Exit(1) from e


def get_desired(path: Path) -> list[ExtensionRecord]:
    """Load the desired extension list, exiting on errors."""
    try:
        return load_desired_extensions(path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1) from e


@app.callback()
def callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug)",
        ),
    ] = 0,
) -> None:
    """extsync - keep installed editor extensions in sync with a desired list."""
    setup_logging(verbose)


@app.command()
def version() -> None:
    """Show the extsync version."""
    console.print(f"extsync {__version__}")


@app.command("list")
def list_extensions(
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write the installed extensions to a JSON file usable as a desired list",
        ),
    ] = None,
    config_path: ConfigOption = None,
    extensions_dir: ExtensionsDirOption = None,
    exclude: ExcludeOption = None,
) -> None:
    """List installed extensions (built-ins and excluded ones are left out)."""
    config = get_config(config_path, extensions_dir=extensions_dir, exclude=exclude)
    synchronizer = get_synchronizer(config)
    installed = synchronizer.inventory.list_installed(config.excluded_extensions)

    if output is not None:
        save_extension_list(output, installed)
        print_success(f"Wrote {len(installed)} extension(s) to {output}")
        return

    if not installed:
        console.print("No extensions installed")
        return

    table = Table(title="Installed Extensions")
    table.add_column("Extension", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Path", style="dim")

    for ext in installed:
        table.add_row(ext.id, ext.version, str(ext.install_path or ""))

    console.print(table)


@app.command()
def diff(
    desired_file: Annotated[
        Path,
        typer.Argument(help="JSON file listing the desired extensions"),
    ],
    config_path: ConfigOption = None,
    extensions_dir: ExtensionsDirOption = None,
    registry: RegistryOption = None,
    proxy: ProxyOption = None,
    auto_update: AutoUpdateOption = None,
    exclude: ExcludeOption = None,
) -> None:
    """Show what a sync would add, update and remove, without changing anything."""
    config = get_config(config_path, extensions_dir, registry, proxy, auto_update, exclude)
    desired = get_desired(desired_file)
    synchronizer = get_synchronizer(config)

    installed = {ext.key: ext for ext in synchronizer.inventory.list_installed()}
    result = synchronizer.compute_diff(desired)

    if result.is_empty:
        console.print("Extensions are up to date")
        return

    table = Table(title="Pending Changes")
    table.add_column("Action")
    table.add_column("Extension", style="cyan")
    table.add_column("Installed", style="dim")
    table.add_column("Desired", style="green")

    for ext in result.added:
        table.add_row("[green]add[/green]", ext.id, "", ext.version)
    for ext in result.updated:
        current = installed.get(ext.key)
        table.add_row("[yellow]update[/yellow]", ext.id, current.version if current else "", ext.version)
    for ext in result.removed:
        table.add_row("[red]remove[/red]", ext.id, ext.version, "")

    console.print(table)
    console.print(f"\n{result.total} change(s), {len(result.reserved)} unchanged")


def _print_outcome(done: str, action: str, outcome: SyncOutcome) -> None:
    for ext in outcome.succeeded:
        print_success(f"{done} {ext}")
    for ext in outcome.failed:
        print_error(f"Failed to {action} {ext.id}: {outcome.error_for(ext)}")


@app.command()
def sync(
    desired_file: Annotated[
        Path,
        typer.Argument(help="JSON file listing the desired extensions"),
    ],
    no_progress: Annotated[
        bool,
        typer.Option("--no-progress", help="Don't show the progress bar"),
    ] = False,
    config_path: ConfigOption = None,
    extensions_dir: ExtensionsDirOption = None,
    registry: RegistryOption = None,
    proxy: ProxyOption = None,
    auto_update: AutoUpdateOption = None,
    exclude: ExcludeOption = None,
) -> None:
    """Add, update and remove extensions to match the desired list.

    Extensions that fail are reported and skipped; the command exits with
    status 1 if any extension failed.
    """
    config = get_config(config_path, extensions_dir, registry, proxy, auto_update, exclude)
    desired = get_desired(desired_file)
    reporter = None if no_progress else RichProgressReporter(console)
    synchronizer = get_synchronizer(config, reporter=reporter)

    result = synchronizer.sync(desired, show_progress=not no_progress)

    if result.success_count == 0 and result.failure_count == 0:
        console.print("Extensions are up to date")

    _print_outcome("Added", "add", result.added)
    _print_outcome("Updated", "update", result.updated)
    _print_outcome("Removed", "remove", result.removed)

    if result.ledger is not None and not result.ledger.ok:
        print_warning(f"Could not update the obsolete ledger: {result.ledger.error}")

    if not result.all_successful:
        console.print(
            f"\n{result.success_count} succeeded, {result.failure_count} failed",
        )
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
