"""CLI for lostcontrol."""

import logging
import os
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .errors import LostControlError
from .ops import init_repository, open_repository
from .utils import humanize_date


app = typer.Typer(help="""\
Minimal local version control. Stage files, snapshot them as full-copy
commits on a branch, list history, restore or remove snapshots.""")

stage_app = typer.Typer(help="Manage the staged file set")
commit_app = typer.Typer(help="Create, list, restore and remove commits")
branch_app = typer.Typer(help="Inspect branches")
app.add_typer(stage_app, name="stage")
app.add_typer(commit_app, name="commit")
app.add_typer(branch_app, name="branch")

console = Console()


def setup_logging(*, is_verbose: bool) -> None:
    """Configure logging based on verbosity.

    Args:
        is_verbose: Whether to enable debug logging.
    """
    log_level = "DEBUG" if is_verbose else os.environ.get("LOSTCONTROL_LOG_LEVEL", "WARNING").upper()

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
    )


def _fail(error: Exception) -> NoReturn:
    """Print a user-facing error and exit with status 1."""
    console.print(f"[red]✗[/red] {error}", highlight=False)
    raise typer.Exit(1)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    setup_logging(is_verbose=verbose)


@app.command()
def init(
    name: str = typer.Argument(..., help="Repository name"),
    path: Optional[Path] = typer.Argument(None, help="Directory to initialize (default: current directory)"),
):
    """Initialize a new repository.

    Examples:
        lostcontrol init demo           # Initialize current directory
        lostcontrol init demo ./work    # Initialize another directory
    """
    try:
        repo = init_repository(name, path)
    except LostControlError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Repository [bold]{repo.name}[/bold] initialized in {repo.root}")


@app.command("list")
def list_repo(
    directory: Optional[Path] = typer.Argument(None, help="Repository directory (default: current directory)"),
):
    """List branches, commit counts and staged files."""
    try:
        with open_repository(directory) as repo:
            branches = repo.get_branches()
    except LostControlError as e:
        _fail(e)

    console.print(f"Repository [bold]{repo.name}[/bold]:")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Branch")
    table.add_column("Commits", justify="right")
    table.add_column("Last updated")
    for branch in branches:
        label = branch.name
        if branch.name == repo.current_branch:
            label += " (current)"
        last = branch.last_commit
        if last is None:
            updated = "Never"
        else:
            updated = f"{last.get_time_formatted()} ({humanize_date(last.creation_datetime)})"
        table.add_row(label, str(branch.commit_count()), updated)
    console.print(table)

    if repo.staged_files:
        console.print("Staged Files:")
        for path in repo.staged_files:
            console.print(f"  {path}", markup=False, highlight=False)


@app.command("help")
def show_help(ctx: typer.Context):
    """Show usage for all commands."""
    console.print(ctx.parent.get_help(), markup=False, highlight=False)


# ============= stage =============

@stage_app.command("add")
def stage_add(
    files: List[Path] = typer.Argument(..., help="Files or directories to stage"),
):
    """Stage files for the next commit. Directories are added recursively."""
    existing = []
    for file in files:
        if file.exists():
            existing.append(file)
        else:
            console.print(f"[yellow]⚠[/yellow] File not found: {file}", highlight=False)

    try:
        with open_repository() as repo:
            added = repo.stage(existing)
    except LostControlError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Staged {len(added)} files")
    for path in added:
        console.print(f"  [green]+[/green] {path}", highlight=False)


@stage_app.command("remove")
def stage_remove(
    files: List[Path] = typer.Argument(..., help="Files or directories to unstage"),
):
    """Remove files from the staged set (files on disk are untouched)."""
    try:
        with open_repository() as repo:
            removed = repo.unstage(files)
    except LostControlError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Unstaged {len(removed)} files")
    for path in removed:
        console.print(f"  [red]-[/red] {path}", highlight=False)


@stage_app.command("clear")
def stage_clear():
    """Unstage every file."""
    try:
        with open_repository() as repo:
            repo.unstage_all()
    except LostControlError as e:
        _fail(e)
    console.print("[green]✓[/green] Cleared all staged files")


# ============= commit =============

@commit_app.command("add")
def commit_add(
    message: List[str] = typer.Argument(..., help="Commit message"),
):
    """Snapshot the staged files as a new commit on the current branch."""
    text = " ".join(message)
    try:
        with open_repository() as repo:
            count = repo.commit(text)
            commit = repo.get_branch(repo.current_branch).last_commit
    except LostControlError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Committed {count} files")
    console.print(commit.render(), markup=False, highlight=False)


@commit_app.command("remove")
def commit_remove(
    commit_id: int = typer.Argument(..., help="Commit id"),
):
    """Remove a commit and its snapshot directory."""
    try:
        with open_repository() as repo:
            repo.remove_commit(commit_id)
    except LostControlError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Removed commit {commit_id}")


@commit_app.command("restore")
def commit_restore(
    commit_id: Optional[int] = typer.Argument(None, help="Commit id (default: latest commit)"),
):
    """Copy a commit's files back into the working directory.

    Files that are not part of the commit are left untouched.
    """
    try:
        with open_repository() as repo:
            if commit_id is None:
                commit_id = repo.get_branch(repo.current_branch).current_commit
            count = repo.restore_commit(commit_id)
    except LostControlError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Restored commit {commit_id} ({count} files)")


@commit_app.command("list")
def commit_list(
    commit_id: Optional[int] = typer.Argument(None, help="Show only this commit"),
):
    """List the commits of the current branch."""
    try:
        with open_repository() as repo:
            ledger = repo.get_branch(repo.current_branch)
    except LostControlError as e:
        _fail(e)

    if commit_id is not None:
        commit = ledger.get_commit(commit_id)
        if commit is None:
            console.print(f"[red]✗[/red] Commit {commit_id} not found on branch {ledger.name}")
            raise typer.Exit(1)
        console.print(commit.render(), markup=False, highlight=False)
        return

    commits = ledger.get_commits()
    if not commits:
        console.print(f"Branch {ledger.name} contains no commits", highlight=False)
        return
    for commit in commits:
        console.print(commit.render(), markup=False, highlight=False, end="")
        console.print("-" * 40)


# ============= branch =============

@branch_app.command("list")
def branch_list():
    """List branches with their commit counts."""
    try:
        with open_repository() as repo:
            branches = repo.get_branches()
    except LostControlError as e:
        _fail(e)

    for branch in branches:
        marker = "*" if branch.name == repo.current_branch else " "
        console.print(f"{marker} {branch.name} ({branch.commit_count()} commits)", highlight=False)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
