from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from gitty.models import ItemKind, NotificationItem

BASE_TIME = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.UTC)


@pytest.fixture(autouse=True)
def _isolate_gitty_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GITTY_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("GITTY_DB", str(tmp_path / "gitty.sqlite"))
    monkeypatch.setenv("GITTY_DAEMON_LOG", str(tmp_path / "sync-daemon.log"))
    for name in (
        "GITTY_TOKEN",
        "GITHUB_TOKEN",
        "GITTY_API_BASE_URL",
        "GITTY_API_VERSION",
        "GITTY_REQUEST_TIMEOUT_S",
        "GITTY_REFRESH_INTERVAL_S",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_item():
    """Build a NotificationItem whose ``updated_at`` is BASE_TIME + ``minutes``."""

    def _make(
        item_id: str | int,
        *,
        minutes: int = 0,
        group_path: str = "acme/widgets",
        kind: ItemKind = ItemKind.ISSUE,
        **fields,
    ) -> NotificationItem:
        return NotificationItem(
            id=str(item_id),
            title=fields.pop("title", f"Thread {item_id}"),
            group_path=group_path,
            kind=kind,
            updated_at=BASE_TIME + dt.timedelta(minutes=minutes),
            sequence_number=fields.pop("sequence_number", None),
            **fields,
        )

    return _make
