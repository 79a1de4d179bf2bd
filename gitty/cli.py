from __future__ import annotations

import typer
from rich import print

from . import __version__
from .commands.common import GittyRuntime, build_runtime
from .commands.daemon_cmds import daemon_cmd, interval_cmd
from .commands.filter_cmds import groups_cmd, hide_cmd, unhide_cmd
from .commands.inbox_cmds import (
    done_cmd,
    list_cmd,
    read_all_cmd,
    read_cmd,
    repos_cmd,
    reset_cmd,
    status_cmd,
    subscribe_cmd,
    sync_cmd,
)
from .config import load_config
from .credentials import env_credential_provider
from .logs import configure_console_logging
from .sync.http_client import GitHubClient

app = typer.Typer(help="gitty: GitHub notifications from the terminal")


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    configure_console_logging(verbose)


def _runtime(db_path: str | None) -> GittyRuntime:
    return build_runtime(db_path)


def _client() -> GitHubClient:
    return GitHubClient.from_config(load_config())


@app.command()
def sync(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Fetch new notifications from GitHub."""

    sync_cmd(runtime_from_path=_runtime, db_path=db_path)


@app.command("list")
def list_items(
    repo: str = typer.Option(None, "--repo", help="Only show one repository (owner/name)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
    unread: bool = typer.Option(False, "--unread", help="Only unread notifications"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Show cached notifications, newest first."""

    list_cmd(
        runtime_from_path=_runtime,
        db_path=db_path,
        repository=repo,
        as_json=as_json,
        unread_only=unread,
    )


@app.command()
def done(item_id: str, db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Archive a notification and hide it for good."""

    done_cmd(runtime_from_path=_runtime, db_path=db_path, item_id=item_id)


@app.command()
def read(item_id: str, db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Mark a notification as read."""

    read_cmd(runtime_from_path=_runtime, db_path=db_path, item_id=item_id)


@app.command("read-all")
def read_all(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Mark every notification as read."""

    read_all_cmd(runtime_from_path=_runtime, db_path=db_path)


@app.command()
def subscribe(
    item_id: str,
    refresh: bool = typer.Option(False, help="Re-read the subscription instead of toggling"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Toggle the subscription of an issue or pull request thread."""

    subscribe_cmd(runtime_from_path=_runtime, db_path=db_path, item_id=item_id, refresh=refresh)


@app.command()
def hide(group: str, db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Hide every notification from an organization or user."""

    hide_cmd(runtime_from_path=_runtime, db_path=db_path, group=group)


@app.command()
def unhide(group: str, db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Show a hidden organization or user again."""

    unhide_cmd(runtime_from_path=_runtime, db_path=db_path, group=group)


@app.command()
def groups(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """List organizations and users seen in the cache."""

    groups_cmd(runtime_from_path=_runtime, db_path=db_path)


@app.command()
def repos(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """List repositories with visible notifications."""

    repos_cmd(runtime_from_path=_runtime, db_path=db_path)


@app.command()
def status(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Show cache and sync status."""

    status_cmd(runtime_from_path=_runtime, db_path=db_path)


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Forget all local state (sign-out)."""

    reset_cmd(runtime_from_path=_runtime, db_path=db_path, yes=yes)


@app.command()
def daemon(
    interval_s: int = typer.Option(None, help="Refresh interval in seconds"),
    db_path: str = typer.Option(None, help="Path to SQLite database"),
) -> None:
    """Refresh notifications in the foreground on a timer."""

    daemon_cmd(runtime_from_path=_runtime, db_path=db_path, interval_s=interval_s)


@app.command()
def interval(seconds: int = typer.Argument(None, help="New refresh interval")) -> None:
    """Show or set the refresh interval."""

    interval_cmd(seconds=seconds)


@app.command("validate-token")
def validate_token() -> None:
    """Check the configured token against the GitHub API."""

    token = env_credential_provider()
    if not token:
        print("[red]No GitHub token configured.[/red]")
        raise typer.Exit(code=1)
    with _client() as client:
        valid = client.validate_token(token)
    if not valid:
        print("[red]Token was rejected by GitHub[/red]")
        raise typer.Exit(code=1)
    print("[green]✓ Token is valid[/green]")


def main() -> None:
    app()


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)
