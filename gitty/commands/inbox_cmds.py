from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from .common import api_errors, format_item, require_token


def sync_cmd(*, runtime_from_path, db_path: str | None) -> None:
    """Fetch new notifications and print the visible count."""

    require_token()
    runtime = runtime_from_path(db_path)
    try:
        with api_errors():
            items = runtime.coordinator.sync()
        unread = sum(1 for item in items if item.is_unread)
        print(f"[green]✓ Synced[/green] {len(items)} notifications ({unread} unread)")
    finally:
        runtime.close()


def list_cmd(
    *,
    runtime_from_path,
    db_path: str | None,
    repository: str | None,
    as_json: bool,
    unread_only: bool,
) -> None:
    runtime = runtime_from_path(db_path)
    try:
        items = runtime.coordinator.visible(repository=repository)
    finally:
        runtime.close()
    if unread_only:
        items = [item for item in items if item.is_unread]
    if as_json:
        typer.echo(json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2))
        return
    if not items:
        print("No notifications")
        return
    for item in items:
        print(format_item(item))


def done_cmd(*, runtime_from_path, db_path: str | None, item_id: str) -> None:
    require_token()
    runtime = runtime_from_path(db_path)
    try:
        with api_errors():
            changed = runtime.coordinator.mark_done(item_id)
    finally:
        runtime.close()
    if changed:
        print(f"[green]✓ Marked {escape(item_id)} as done[/green]")
    else:
        print(f"{escape(item_id)} is already done")


def read_cmd(*, runtime_from_path, db_path: str | None, item_id: str) -> None:
    require_token()
    runtime = runtime_from_path(db_path)
    try:
        with api_errors():
            changed = runtime.coordinator.mark_as_read(item_id)
    finally:
        runtime.close()
    if changed:
        print(f"[green]✓ Marked {escape(item_id)} as read[/green]")
    else:
        print(f"{escape(item_id)} is already read")


def read_all_cmd(*, runtime_from_path, db_path: str | None) -> None:
    require_token()
    runtime = runtime_from_path(db_path)
    try:
        with api_errors():
            changed = runtime.coordinator.mark_all_read()
    finally:
        runtime.close()
    print(f"[green]✓ Marked {changed} notifications as read[/green]")


def subscribe_cmd(
    *, runtime_from_path, db_path: str | None, item_id: str, refresh: bool
) -> None:
    """Toggle the thread subscription (or re-read it with ``refresh``)."""

    require_token()
    runtime = runtime_from_path(db_path)
    try:
        with api_errors():
            item = runtime.coordinator.get_item(item_id)
            if not item.supports_subscription:
                print(f"[yellow]{item.kind.value} threads do not support subscriptions[/yellow]")
                raise typer.Exit(code=1)
            if refresh:
                subscribed = runtime.coordinator.refresh_subscription(item_id)
            else:
                subscribed = runtime.coordinator.toggle_subscription(item_id)
    finally:
        runtime.close()
    state = "subscribed" if subscribed else "unsubscribed"
    print(f"{escape(item_id)}: {state}")


def repos_cmd(*, runtime_from_path, db_path: str | None) -> None:
    runtime = runtime_from_path(db_path)
    try:
        repositories = runtime.coordinator.repositories()
    finally:
        runtime.close()
    if not repositories:
        print("No repositories")
        return
    for name in repositories:
        print(f"- {escape(name)}")


def status_cmd(*, runtime_from_path, db_path: str | None) -> None:
    runtime = runtime_from_path(db_path)
    try:
        coordinator = runtime.coordinator
        markers = coordinator.markers()
        visible = coordinator.visible()
        stats = runtime.store.stats()
        hidden = sorted(coordinator.hidden_groups())
        db_location = runtime.store.db_path
    finally:
        runtime.close()

    def _fmt(value) -> str:
        return value.isoformat() if value else "never"

    print("[bold]Cache[/bold]")
    print(f"- Database: {db_location}")
    print(f"- Cached: {stats['cached_items']}")
    print(f"- Visible: {len(visible)} ({sum(1 for i in visible if i.is_unread)} unread)")
    print(f"- Done: {stats['done_items']}")
    print(f"- Hidden groups: {', '.join(hidden) if hidden else 'none'}")
    print("\n[bold]Sync[/bold]")
    print(f"- Last fetch: {_fmt(markers.last_fetch_at)}")
    print(f"- High-water mark: {_fmt(markers.last_seen_updated_at)}")


def reset_cmd(*, runtime_from_path, db_path: str | None, yes: bool) -> None:
    if not yes:
        typer.confirm("Forget cached notifications, done items and hidden groups?", abort=True)
    runtime = runtime_from_path(db_path)
    try:
        runtime.coordinator.reset()
    finally:
        runtime.close()
    print("[green]✓ Local state cleared[/green]")
