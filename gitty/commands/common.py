from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import httpx
import typer
from rich import print
from rich.markup import escape

from .. import db
from ..config import GittyConfig, load_config, read_config_file, write_config_file
from ..credentials import env_credential_provider, looks_like_token
from ..errors import GitHubAPIError, Unauthorized
from ..models import NotificationItem
from ..store import CacheStore
from ..sync.coordinator import SyncCoordinator
from ..sync.http_client import GitHubClient

REAUTH_HINT = "Set GITTY_TOKEN (or GITHUB_TOKEN) to a token with the 'notifications' scope."


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def require_token(credentials: Callable[[], str | None] = env_credential_provider) -> str:
    token = credentials()
    if not token:
        print("[red]No GitHub token configured.[/red]")
        print(REAUTH_HINT)
        raise typer.Exit(code=1)
    if not looks_like_token(token):
        print("[yellow]Token does not look like a GitHub personal access token[/yellow]")
    return token


@dataclass
class GittyRuntime:
    config: GittyConfig
    store: CacheStore
    client: GitHubClient
    coordinator: SyncCoordinator

    def close(self) -> None:
        self.client.close()
        self.store.close()


def build_runtime(
    db_path: str | None,
    *,
    transport: httpx.BaseTransport | None = None,
    credentials: Callable[[], str | None] = env_credential_provider,
) -> GittyRuntime:
    cfg = load_config()
    store = CacheStore(db.resolve_db_path(db_path or cfg.db_path), check_same_thread=False)
    client = GitHubClient.from_config(cfg, transport=transport)
    coordinator = SyncCoordinator(store, client, credentials)
    return GittyRuntime(config=cfg, store=store, client=client, coordinator=coordinator)


@contextmanager
def api_errors() -> Iterator[None]:
    """Turn API and lookup failures into a red message and exit code 1."""

    try:
        yield
    except Unauthorized as exc:
        print(f"[red]{exc.user_message}[/red]")
        print(REAUTH_HINT)
        raise typer.Exit(code=1) from exc
    except GitHubAPIError as exc:
        print(f"[red]{exc.user_message}[/red]")
        if exc.detail:
            print(f"  {exc.detail}")
        raise typer.Exit(code=1) from exc
    except KeyError as exc:
        print(f"[red]Unknown notification id: {exc.args[0] if exc.args else ''}[/red]")
        raise typer.Exit(code=1) from exc


def format_item(item: NotificationItem) -> str:
    marker = "[bold blue]●[/bold blue]" if item.is_unread else " "
    number = f" #{item.sequence_number}" if item.shows_number and item.sequence_number else ""
    when = item.updated_at.strftime("%Y-%m-%d %H:%M")
    reason = f" ({item.reason})" if item.reason else ""
    return (
        f"{marker} [dim]{item.id}[/dim] {escape(item.group_path)}{number} "
        f"{item.kind.value}: {escape(item.title)}{escape(reason)} [dim]{when}[/dim]"
    )
