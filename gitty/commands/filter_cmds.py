from __future__ import annotations

from rich import print
from rich.markup import escape


def hide_cmd(*, runtime_from_path, db_path: str | None, group: str) -> None:
    runtime = runtime_from_path(db_path)
    try:
        runtime.coordinator.hide_group(group)
    finally:
        runtime.close()
    print(f"[green]✓ Hidden {escape(group)}[/green]")


def unhide_cmd(*, runtime_from_path, db_path: str | None, group: str) -> None:
    runtime = runtime_from_path(db_path)
    try:
        runtime.coordinator.unhide_group(group)
    finally:
        runtime.close()
    print(f"[green]✓ Showing {escape(group)}[/green]")


def groups_cmd(*, runtime_from_path, db_path: str | None) -> None:
    """List every group seen in the cache, marking the hidden ones."""

    runtime = runtime_from_path(db_path)
    try:
        groups = runtime.coordinator.groups()
        hidden = runtime.coordinator.hidden_groups()
    finally:
        runtime.close()
    # Hidden groups with nothing cached are still listed so they can be unhidden.
    names = sorted(set(groups) | hidden)
    if not names:
        print("No groups found in cached notifications")
        return
    for name in names:
        suffix = " [dim](hidden)[/dim]" if name in hidden else ""
        print(f"- {escape(name)}{suffix}")
