"""Command-line interface for lnk."""

from __future__ import annotations

import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Iterable

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from .config import LOG_LEVEL_ENV, CommandOptions
from .errors import (
    AlreadyManagedError,
    BootstrapError,
    ExistingRepositoryError,
    GitOperationError,
    LnkError,
    ManagedFilesExistError,
    NoRemoteError,
    NotInitializedError,
    NotManagedError,
)
from .manager import LnkManager
from .models import DoctorResult, HostListing, InitOutcome, ManagedEntry, SyncStatus

app = typer.Typer(help="Git-native dotfiles management with symlinks", no_args_is_help=True)
console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _package_version() -> str:
    try:
        return version("lnk")
    except PackageNotFoundError:
        return "dev"


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT, datefmt="%H:%M:%S")
        logging.getLogger("lnk").setLevel(logging.DEBUG)
        return
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
    logging.basicConfig(level=level if isinstance(level, int) else logging.WARNING)


def _load_manager(options: CommandOptions) -> LnkManager:
    return LnkManager.from_options(options)


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, typer.Exit):
        raise exc
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Check the permissions of your home and lnk directories.")
        raise typer.Exit(code=1)
    if isinstance(exc, BootstrapError):
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=exc.returncode or 1)
    if isinstance(exc, LnkError):
        console.print(f"[red]{escape(str(exc))}[/red]")
        hint = _hint_for(exc)
        if hint:
            console.print(f"[yellow]{hint}[/yellow]")
        raise typer.Exit(code=1)
    raise exc


def _hint_for(exc: LnkError) -> str | None:
    if isinstance(exc, NotInitializedError):
        return "Tip: run 'lnk init' to create the repository."
    if isinstance(exc, AlreadyManagedError):
        return "Tip: use 'lnk list' to see what is already managed."
    if isinstance(exc, NotManagedError):
        return "Tip: only symlinks created by 'lnk add' can be removed; use --force for dangling entries."
    if isinstance(exc, ManagedFilesExistError):
        return "Tip: re-run with --force to replace the local repository with the remote."
    if isinstance(exc, ExistingRepositoryError):
        return "Tip: re-run with --force to adopt the existing repository as-is."
    if isinstance(exc, NoRemoteError):
        return "Tip: clone with 'lnk init --remote <url>' or add a remote with git."
    if isinstance(exc, GitOperationError) and exc.operation in {"push", "pull"}:
        return "Tip: check your network connection and the remote repository."
    return None


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def _format_entries(title: str, entries: Iterable[str]) -> None:
    items = list(entries)
    table = Table(show_header=True, header_style="bold magenta", title=title)
    table.add_column("Path")
    for entry in items:
        table.add_row(escape(entry))
    console.print(table)


def _format_listing(listing: HostListing) -> None:
    if not listing.entries:
        console.print(f"[dim]No files currently managed by lnk ({listing.label})[/dim]")
        return
    count = len(listing.entries)
    _format_entries(f"Files managed by lnk ({listing.label}): {count} {_plural(count, 'item')}", listing.entries)


def _format_added(entries: list[ManagedEntry]) -> None:
    if len(entries) == 1:
        entry = entries[0]
        scope = "" if entry.is_common else f" (host: {entry.host})"
        console.print(f"[green]Added[/green] {escape(entry.relative_path)} to lnk{escape(scope)}")
        console.print(f"  [dim]{escape(str(entry.symlink_location))} -> {escape(str(entry.payload_location))}[/dim]")
        return
    console.print(f"[green]Added {len(entries)} items[/green] to lnk")
    for entry in entries:
        console.print(f"  {escape(entry.relative_path)}")


def _format_status(status: SyncStatus) -> None:
    remote = status.remote_branch or status.remote_url or "no remote configured"
    if status.dirty:
        console.print("[yellow]Repository has uncommitted changes[/yellow]")
    elif status.up_to_date:
        console.print("[green]Repository is up to date[/green]")
    else:
        console.print("[bold]Repository status[/bold]")
    console.print(f"  Remote: [cyan]{escape(remote)}[/cyan] ({escape(status.remote_url)})")
    if status.ahead:
        console.print(f"  [yellow]{status.ahead} {_plural(status.ahead, 'commit')} ahead[/yellow]")
    if status.behind:
        console.print(f"  [red]{status.behind} {_plural(status.behind, 'commit')} behind[/red]")

    if status.dirty:
        console.print("[yellow]Run 'lnk push' to commit and sync your changes.[/yellow]")
    elif status.behind:
        console.print("[yellow]Run 'lnk pull' to get the latest changes.[/yellow]")
    elif status.ahead:
        console.print("[yellow]Run 'lnk push' to sync your changes.[/yellow]")


def _format_doctor(result: DoctorResult, *, dry_run: bool) -> None:
    if not result.has_issues:
        console.print("[green]All managed entries are healthy.[/green]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Entry")
    table.add_column("Issue")
    for entry in result.invalid_entries:
        table.add_row(escape(entry), "[red]payload missing from repository[/red]")
    for entry in result.broken_symlinks:
        table.add_row(escape(entry), "[yellow]symlink missing or broken[/yellow]")
    console.print(table)

    total = result.total_issues
    if dry_run:
        console.print(f"[yellow]Found {total} {_plural(total, 'issue')}. Run 'lnk doctor' to fix them.[/yellow]")
    else:
        console.print(f"[green]Fixed {total} {_plural(total, 'issue')}.[/green]")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"lnk {_package_version()}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    show_version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Manage dotfiles by moving them into a Git repository and symlinking them back."""

    _configure_logging(verbose)


@app.command()
def init(
    remote: str | None = typer.Option(None, "--remote", "-r", help="Clone an existing dotfiles repository"),
    no_bootstrap: bool = typer.Option(False, "--no-bootstrap", help="Skip running bootstrap.sh after cloning"),
    force: bool = typer.Option(False, "--force", help="Overwrite or adopt an existing repository"),
) -> None:
    """Create the lnk repository, or clone it from a remote."""

    try:
        options = CommandOptions(remote_url=remote, no_bootstrap=no_bootstrap, force=force)
        manager = _load_manager(options)
        outcome = manager.init(remote_url=options.remote_url, force=options.force)

        if outcome is InitOutcome.EXISTING:
            console.print(f"[green]lnk repository already initialized[/green] at {escape(str(manager.repo_root))}")
            return
        if outcome is InitOutcome.CREATED:
            console.print(f"[green]Initialized empty lnk repository[/green] at {escape(str(manager.repo_root))}")
            console.print("[dim]Next: run 'lnk add <file>' to start managing dotfiles.[/dim]")
            return

        console.print(f"[green]Cloned[/green] {escape(options.remote_url or '')} into {escape(str(manager.repo_root))}")
        if options.no_bootstrap:
            console.print("[dim]Skipped bootstrap script (--no-bootstrap).[/dim]")
            return
        if manager.run_bootstrap():
            console.print("[green]Bootstrap completed successfully.[/green]")
        console.print("[dim]Next: run 'lnk pull' to restore symlinks.[/dim]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def add(
    paths: list[Path] = typer.Argument(..., help="Files or directories to manage"),
    host: str | None = typer.Option(None, "--host", "-H", help="Manage under a host-specific configuration"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Add the files inside directories individually"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be added without changing anything"),
) -> None:
    """Move files into the repository and replace them with symlinks."""

    try:
        options = CommandOptions(host=host, recursive=recursive, dry_run=dry_run)
        manager = _load_manager(options)

        if options.dry_run:
            preview = manager.preview_add(paths, recursive=options.recursive)
            count = len(preview)
            console.print(f"[yellow]Would add {count} {_plural(count, 'file')}:[/yellow]")
            for item in preview:
                console.print(f"  {escape(str(item))}")
            console.print("[dim]Run without --dry-run to apply these changes.[/dim]")
            return

        if options.recursive:
            with Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Adding files", total=None)

                def report(current: int, total: int, name: str) -> None:
                    progress.update(task, total=total, completed=current, description=f"Adding {name}")

                entries = manager.add_paths(paths, recursive=True, progress=report)
        else:
            entries = manager.add_paths(paths)

        _format_added(entries)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def rm(
    path: Path = typer.Argument(..., help="Managed symlink to release"),
    host: str | None = typer.Option(None, "--host", "-H", help="Release from a host-specific configuration"),
    force: bool = typer.Option(False, "--force", "-f", help="Drop the entry even if the symlink is gone"),
) -> None:
    """Remove a file from lnk and put the original back in place."""

    try:
        options = CommandOptions(host=host, force=force)
        manager = _load_manager(options)
        relative_path = manager.remove(path, force=options.force)
        console.print(f"[green]Removed[/green] {escape(relative_path)} from lnk")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command("list")
def list_command(
    host: str | None = typer.Option(None, "--host", "-H", help="List a host-specific configuration"),
    show_all: bool = typer.Option(False, "--all", "-a", help="List the common and every host configuration"),
) -> None:
    """List files managed by lnk."""

    try:
        options = CommandOptions(host=host)
        manager = _load_manager(options)
        if show_all:
            for listing in manager.list_all():
                _format_listing(listing)
            return
        _format_listing(HostListing(host=manager.host, entries=tuple(manager.list_entries())))
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def status() -> None:
    """Show how the repository compares to its remote."""

    try:
        manager = _load_manager(CommandOptions())
        _format_status(manager.status())
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def diff() -> None:
    """Show uncommitted changes in the repository."""

    try:
        manager = _load_manager(CommandOptions())
        output = manager.diff(color=sys.stdout.isatty())
        if not output:
            console.print("[green]No uncommitted changes[/green]")
            return
        typer.echo(output)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def push(
    message: str | None = typer.Argument(None, help="Commit message for pending changes"),
) -> None:
    """Commit pending changes and push them to the remote."""

    try:
        options = CommandOptions(message=message)
        manager = _load_manager(options)
        committed = manager.push(options.message)
        if committed:
            console.print("[green]Committed and pushed changes[/green]")
        else:
            console.print("[green]Pushed to remote[/green] (nothing new to commit)")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def pull(
    host: str | None = typer.Option(None, "--host", "-H", help="Restore symlinks for a host-specific configuration"),
) -> None:
    """Pull from the remote and restore symlinks."""

    try:
        options = CommandOptions(host=host)
        manager = _load_manager(options)
        restored = manager.pull()
        label = f" (host: {manager.host})" if manager.host else ""
        console.print(f"[green]Successfully pulled changes{escape(label)}[/green]")
        if not restored:
            console.print("  All symlinks already in place")
            return
        console.print(f"  Restored {len(restored)} {_plural(len(restored), 'symlink')}:")
        for entry in restored:
            console.print(f"    {escape(entry)}")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def doctor(
    host: str | None = typer.Option(None, "--host", "-H", help="Check a host-specific configuration"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Report issues without fixing them"),
) -> None:
    """Find and repair invalid entries and broken symlinks."""

    try:
        options = CommandOptions(host=host, dry_run=dry_run)
        manager = _load_manager(options)
        result = manager.doctor(dry_run=options.dry_run)
        _format_doctor(result, dry_run=options.dry_run)
        if options.dry_run and result.has_issues:
            raise typer.Exit(code=1)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def bootstrap() -> None:
    """Run the repository's bootstrap.sh script."""

    try:
        manager = _load_manager(CommandOptions())
        if not manager.run_bootstrap():
            console.print("[yellow]No bootstrap script found[/yellow] (add bootstrap.sh to the repository root)")
            return
        console.print("[green]Bootstrap completed successfully.[/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
