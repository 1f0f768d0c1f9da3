"""
Command-line interface for dep.

Maps user commands onto repository operations and formats their results.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

import click

from dep import __version__
from dep.config import config
from dep.logging import get_dep_logger, initialize_logging
from dep.version_control import (
    RemoteSync,
    Repository,
    VersionControlError,
)

logger = get_dep_logger("cli")


class DepGroup(click.Group):
    """Command group that reports repository errors and exits non-zero."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except VersionControlError as e:
            logger.debug(f"Command failed: {type(e).__name__}: {e}")
            click.secho(f"Error: {e}", fg="red", err=True)
            ctx.exit(1)


def _open() -> Repository:
    return Repository.open(Path.cwd())


@click.group(cls=DepGroup)
@click.version_option(__version__, "-v", "--version", prog_name="dep")
@click.option(
    "--log-level",
    default=config.logging.level,
    show_default=True,
    type=click.Choice(["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Verbosity of diagnostic output on stderr",
)
def cli(log_level: str):
    """dep - Efficient version control."""
    initialize_logging(
        log_dir=Path(config.logging.log_dir),
        level=log_level,
        format_string=config.logging.format,
        enable_file_logging=config.logging.enable_file_logging,
        enable_console_logging=config.logging.enable_console_logging,
    )


# Setup


@cli.command()
@click.argument("directory", required=False, default=".")
def init(directory: str):
    """Create a repository, snapshotting the files already present."""
    existed = Repository.is_repository(directory)
    repo = Repository.init(directory)
    if existed:
        click.echo(f"Reinitialized existing dep repository in {repo.storage.base_dir}")
    else:
        click.echo(f"Initialized empty dep repository in {repo.storage.base_dir}")


@cli.command()
@click.argument("slug")
def clone(slug: str):
    """Clone handle/repo from the remote server."""
    RemoteSync.clone(slug, Path.cwd())
    click.echo(f"Successfully cloned and replayed {slug}.")


@cli.command(name="config")
@click.argument("key", required=False)
@click.argument("value", required=False)
def config_command(key: Optional[str], value: Optional[str]):
    """Show the repository configuration, or set KEY to VALUE."""
    settings = _open().config(key, value)
    for name, setting in settings.items():
        click.echo(f"{name}={setting}")


# Workflow


@cli.command()
def status():
    """Show staged, modified, deleted, and untracked files."""
    result = _open().status()

    click.echo(f"On branch {result.active_branch}")
    click.echo(f"Last commit: {result.last_commit or 'None'}")

    if result.staged:
        click.echo("\nChanges to be committed:")
        for path in result.staged:
            click.secho(f"\t{path}", fg="green")

    if result.modified or result.deleted:
        click.echo("\nChanges not staged for commit:")
        for path in result.modified:
            click.secho(f"\tmodified: {path}", fg="red")
        for path in result.deleted:
            click.secho(f"\tdeleted:  {path}", fg="red")

    if result.untracked:
        click.echo("\nUntracked files:")
        for path in result.untracked:
            click.secho(f"\t{path}", fg="red")

    if result.is_clean:
        click.echo("Nothing to commit.")


@cli.command()
@click.argument("path")
def add(path: str):
    """Stage a file or directory."""
    staged = _open().add(path)
    if staged:
        click.echo(f"Added {', '.join(staged)} to stage.")
    else:
        click.echo(f"No changes to stage in {path}.")


@cli.command()
@click.argument("message")
def commit(message: str):
    """Record the stage as a new commit."""
    repo = _open()
    result = repo.commit(message)
    click.echo(f"[{repo.active_branch} {result.short_hash}] {result.message}")


@cli.command()
@click.argument("path")
def rm(path: str):
    """Stage the removal of a file and delete it."""
    removed = _open().rm(path)
    click.echo(f"File {', '.join(removed)} marked for removal.")


# Branching


@cli.command()
@click.argument("name", required=False)
@click.option("-d", "--delete", "-D", "delete", is_flag=True, help="Delete the branch")
def branch(name: Optional[str], delete: bool):
    """List branches, create NAME, or delete it with -d."""
    repo = _open()

    if not name:
        if delete:
            raise click.UsageError("Specify a branch name to delete.")
        active = repo.active_branch
        for branch_name in repo.list_branches():
            marker = "*" if branch_name == active else " "
            click.echo(f"{marker} {branch_name}")
        return

    if delete:
        repo.delete_branch(name)
        click.echo(f'Deleted branch "{name}".')
    else:
        repo.create_branch(name)
        click.echo(f'Created branch "{name}".')


@cli.command()
@click.argument("name")
@click.option("-f", "--force", is_flag=True, help="Discard local changes to tracked files")
def checkout(name: str, force: bool):
    """Switch to branch NAME, creating it if needed."""
    _open().checkout(name, force=force)
    click.echo(f'Switched to branch "{name}".')


@cli.command()
@click.argument("target")
def merge(target: str):
    """Three-way merge TARGET into the active branch."""
    result = _open().merge(target)
    click.echo(result.summary())
    for path in result.conflicts:
        click.secho(f"\tconflict: {path}", fg="red")


# Contributions


@cli.command()
@click.argument("url", required=False)
def remote(url: Optional[str]):
    """Show or set the remote URL (full URL or handle/repo)."""
    click.echo(_open().remote(url) or "No remote configured.")


@cli.command()
def fetch():
    """Download remote history for the active branch."""
    repo = _open()
    RemoteSync(repo).fetch()
    click.echo(f"Fetched remote history for branch: {repo.active_branch}")


@cli.command()
def pull():
    """Fetch and apply remote commits."""
    applied = RemoteSync(_open()).pull()
    if applied:
        click.echo(f"Applied {len(applied)} commits.")
    else:
        click.echo("Already up to date.")


@cli.command()
def push():
    """Upload local commits missing from the remote."""
    pushed = RemoteSync(_open()).push()
    if pushed:
        click.echo(f"Pushed {len(pushed)} commits to remote.")
    else:
        click.echo("Everything up to date.")


# Changes


@cli.command(name="log")
def log_command():
    """Show the active branch's history, newest first."""
    repo = _open()
    commits = repo.log()
    if not commits:
        click.echo("No commits found.")
        return

    click.echo(f"Branch: {repo.active_branch}\n")
    for entry in commits:
        date = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
        click.secho(f"commit {entry.hash}", fg="yellow")
        click.echo(f"Date: {date}")
        click.echo(f"\n    {entry.message}\n")


@cli.command()
def diff():
    """Show working-tree changes against the last commit."""
    click.echo(_open().diff())


# Caches


@cli.command()
@click.argument(
    "action", required=False, default="push", type=click.Choice(["push", "pop", "list"])
)
def stash(action: str):
    """Stash uncommitted changes, or pop/list stash entries."""
    repo = _open()

    if action == "list":
        entries = repo.stash_list()
        if not entries:
            click.echo("No stashes found.")
            return
        click.echo("Saved stashes:")
        for entry in reversed(entries):
            click.echo(f"{entry.id}: WIP on branch: ({entry.date})")
    elif action == "pop":
        name, changes = repo.stash_pop()
        click.echo(f"Dropped {name} and updated {len(changes)} file(s) in the working directory.")
    else:
        name = repo.stash_push()
        if name is None:
            click.echo("No local changes to save.")
        else:
            click.echo(f"Saved working directory and index state in {name}")


@cli.command()
@click.argument("commit_hash", required=False)
def reset(commit_hash: Optional[str]):
    """Clear the stage, or move the branch back to COMMIT_HASH."""
    _open().reset(commit_hash)
    if commit_hash:
        click.echo(f"Head is now at {commit_hash[:7]}. Working directory updated.")
    else:
        click.echo("Staging area cleared.")


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
