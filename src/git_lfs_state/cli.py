"""Command-line interface for the git LFS state engine."""

import os
from typing import List, Optional
import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .exceptions import GitLfsStateError
from .git.models import CommandResult
from .git.repository import GitLfsRepository
from .logging import get_logger


app = typer.Typer(
    name="git-lfs-state",
    help="Git LFS status, lock and history inspection",
    add_completion=False
)
console = Console()
logger = get_logger(__name__)

REPO_OPTION_HELP = "Path inside the repository (default: configured root or current directory)"


def _open_repository(path: Optional[str]) -> GitLfsRepository:
    """Discover and initialize the repository, exiting on failure."""
    try:
        repository = GitLfsRepository.discover(path)
    except GitLfsStateError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not repository.initialize():
        console.print(f"[red]Git is not available ({repository.settings.binary_path})[/red]")
        raise typer.Exit(1)
    return repository


def _resolve(paths: List[str]) -> List[str]:
    """Paths given on the command line are relative to the current directory."""
    return [os.path.abspath(path) for path in paths]


def _print_errors(result: CommandResult) -> None:
    for line in result.error_messages:
        console.print(f"[red]{line}[/red]")


def _finish(result: CommandResult) -> None:
    _print_errors(result)
    if not result.success:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[green]git-lfs-state v{__version__}[/green]")


@app.command()
def status(
    paths: List[str] = typer.Argument(..., help="Files or directories to refresh"),
    repo: Optional[str] = typer.Option(None, "--repo", "-C", help=REPO_OPTION_HELP),
) -> None:
    """Show file, tree, lock and remote state of files."""
    repository = _open_repository(repo)
    update = repository.update_status(_resolve(paths))

    table = Table(title=f"Status ({repository.repository_root})")
    table.add_column("Path", style="cyan")
    table.add_column("File", style="green")
    table.add_column("Tree", style="green")
    table.add_column("Lock", style="yellow")
    table.add_column("Lock user", style="yellow")
    table.add_column("Remote", style="magenta")
    table.add_column("Branch", style="blue")

    for path in sorted(update.states):
        state = repository.get_state(path).state
        table.add_row(
            path,
            state.file_state.value,
            state.tree_state.value,
            state.lock_state.value,
            state.lock_user,
            state.remote_state.value,
            state.head_branch,
        )
    console.print(table)

    if repository.pending_restart:
        console.print("[yellow]Newer binaries are pending on the current branch[/yellow]")
    _finish(update.result)


@app.command()
def history(
    path: str = typer.Argument(..., help="File to show the history of"),
    merge_conflict: bool = typer.Option(False, "--merge-conflict", help="Only the tip of MERGE_HEAD"),
    repo: Optional[str] = typer.Option(None, "--repo", "-C", help=REPO_OPTION_HELP),
) -> None:
    """Show the history of a file."""
    repository = _open_repository(repo)
    result, revisions = repository.get_history(os.path.abspath(path), merge_conflict=merge_conflict)

    table = Table(title=f"History of {path}")
    table.add_column("#", style="cyan")
    table.add_column("Commit", style="green")
    table.add_column("Date", style="blue")
    table.add_column("Author", style="yellow")
    table.add_column("Action", style="magenta")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Message", max_width=50)

    for revision in revisions:
        table.add_row(
            str(revision.revision_number),
            revision.short_commit_id,
            revision.date.strftime("%Y-%m-%d %H:%M") if revision.date else "",
            revision.user_name,
            revision.action,
            revision.filename,
            str(revision.file_size),
            revision.description.split("\n")[0],
        )
    console.print(table)
    _finish(result)


@app.command()
def locks(
    force: bool = typer.Option(False, "--force", help="Ignore the lock cache and query the server"),
    repo: Optional[str] = typer.Option(None, "--repo", "-C", help=REPO_OPTION_HELP),
) -> None:
    """List Git LFS locks."""
    repository = _open_repository(repo)
    refresh = repository.refresh_locks(force=force)

    table = Table(title="Git LFS locks")
    table.add_column("Path", style="cyan")
    table.add_column("Owner", style="yellow")
    for path, owner in sorted(refresh.locks.items()):
        style = "green" if owner == repository.lock_user else "red"
        table.add_row(path, f"[{style}]{owner}[/{style}]")
    console.print(table)

    for error in refresh.errors:
        console.print(f"[red]{error}[/red]")
    if not refresh.success:
        raise typer.Exit(1)


@app.command()
def lock(
    paths: List[str] = typer.Argument(..., help="Files to lock"),
    repo: Optional[str] = typer.Option(None, "--repo", "-C", help=REPO_OPTION_HELP),
) -> None:
    """Lock files for exclusive editing."""
    repository = _open_repository(repo)
    result = repository.lock(_resolve(paths))
    if result.success:
        console.print(f"[green]Locked {len(paths)} file(s)[/green]")
    _finish(result)


@app.command()
def unlock(
    paths: List[str] = typer.Argument(..., help="Files to unlock"),
    force: bool = typer.Option(False, "--force", help="Break locks held by other users"),
    repo: Optional[str] = typer.Option(None, "--repo", "-C", help=REPO_OPTION_HELP),
) -> None:
    """Release file locks."""
    repository = _open_repository(repo)
    if force and not typer.confirm("Break locks that may belong to other users?"):
        console.print("Unlock cancelled.")
        return
    result = repository.unlock(_resolve(paths), force=force)
    if result.success:
        console.print(f"[green]Unlocked {len(paths)} file(s)[/green]")
    _finish(result)


@app.command()
def fetch(
    repo: Optional[str] = typer.Option(None, "--repo", "-C", help=REPO_OPTION_HELP),
) -> None:
    """Fetch the remote and refresh the lock cache."""
    repository = _open_repository(repo)
    result = repository.fetch_remote()
    for line in result.info_messages:
        console.print(line)
    _finish(result)


@app.command()
def dump(
    parameter: str = typer.Argument(..., help="Revision and path, e.g. HEAD:Content/Map.umap"),
    output: str = typer.Argument(..., help="File to write the content to"),
    repo: Optional[str] = typer.Option(None, "--repo", "-C", help=REPO_OPTION_HELP),
) -> None:
    """Write the content of a file at a revision to disk."""
    repository = _open_repository(repo)
    if not repository.dump_to_file(parameter, output):
        console.print(f"[red]Could not dump {parameter}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Wrote {output}[/green]")


if __name__ == "__main__":
    app()
