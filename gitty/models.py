from __future__ import annotations

import dataclasses
import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .utils import format_iso8601, parse_iso8601

API_REPOS_PREFIX = "https://api.github.com/repos/"
HTML_PREFIX = "https://github.com/"


class ItemKind(str, Enum):
    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"
    COMMIT = "Commit"
    RELEASE = "Release"
    CHECK_SUITE = "CheckSuite"
    DISCUSSION = "Discussion"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: str | None) -> ItemKind:
        for kind in cls:
            if kind.value == value:
                return kind
        return cls.OTHER


_NUMBERED_KINDS = {ItemKind.ISSUE, ItemKind.PULL_REQUEST}


@dataclass(frozen=True)
class NotificationItem:
    """One notification thread as cached locally."""

    id: str
    title: str
    group_path: str
    kind: ItemKind
    updated_at: dt.datetime
    sequence_number: int | None = None
    reason: str | None = None
    is_unread: bool = True
    target_url: str | None = None
    group_url: str | None = None
    is_subscribed: bool = True

    @property
    def group(self) -> str:
        return group_of(self.group_path)

    @property
    def shows_number(self) -> bool:
        return self.kind in _NUMBERED_KINDS

    @property
    def supports_subscription(self) -> bool:
        # Only issues and pull requests reliably expose thread subscriptions.
        return self.kind in _NUMBERED_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "group_path": self.group_path,
            "kind": self.kind.value,
            "updated_at": format_iso8601(self.updated_at),
            "sequence_number": self.sequence_number,
            "reason": self.reason,
            "is_unread": self.is_unread,
            "target_url": self.target_url,
            "group_url": self.group_url,
            "is_subscribed": self.is_subscribed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationItem:
        updated_at = parse_iso8601(str(data.get("updated_at") or ""))
        if updated_at is None:
            raise ValueError(f"invalid updated_at for item {data.get('id')!r}")
        sequence_number = data.get("sequence_number")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            group_path=str(data.get("group_path") or ""),
            kind=ItemKind.parse(data.get("kind")),
            updated_at=updated_at,
            sequence_number=int(sequence_number) if sequence_number is not None else None,
            reason=data.get("reason"),
            is_unread=bool(data.get("is_unread", True)),
            target_url=data.get("target_url"),
            group_url=data.get("group_url"),
            is_subscribed=bool(data.get("is_subscribed", True)),
        )


@dataclass(frozen=True)
class SyncMarkers:
    last_fetch_at: dt.datetime | None = None
    last_seen_updated_at: dt.datetime | None = None


def apply_patch(item: NotificationItem, **fields: Any) -> NotificationItem:
    """Return a copy of ``item`` with ``fields`` replaced."""

    return dataclasses.replace(item, **fields)


def group_of(group_path: str) -> str:
    if not group_path:
        return ""
    return group_path.split("/", 1)[0]


def extract_sequence_number(subject_url: str | None) -> int | None:
    if not subject_url:
        return None
    last = subject_url.rstrip("/").rsplit("/", 1)[-1]
    try:
        return int(last)
    except ValueError:
        return None


def html_url_for_subject(subject_url: str | None, kind: ItemKind) -> str | None:
    if not subject_url:
        return None
    html_url = subject_url.replace(API_REPOS_PREFIX, HTML_PREFIX)
    html_url = html_url.replace("/pulls/", "/pull/")
    html_url = html_url.replace("/commits/", "/commit/")
    if kind is ItemKind.RELEASE:
        # The release id in the API URL is not a tag; link the releases page instead.
        marker = "/releases/"
        index = html_url.find(marker)
        if index >= 0:
            html_url = html_url[: index + len(marker)]
    return html_url


def item_from_api(payload: dict[str, Any]) -> NotificationItem:
    """Map one entry of ``GET /notifications`` to a NotificationItem.

    Raises ``KeyError``/``TypeError``/``ValueError`` on payloads missing the
    required fields; callers translate those into ``MalformedResponse``.
    """

    subject = payload["subject"]
    repository = payload["repository"]
    kind = ItemKind.parse(subject.get("type"))
    subject_url = subject.get("url")
    updated_at = parse_iso8601(str(payload["updated_at"]))
    if updated_at is None:
        raise ValueError(f"invalid updated_at: {payload['updated_at']!r}")
    return NotificationItem(
        id=str(payload["id"]),
        title=str(subject["title"]),
        group_path=str(repository["full_name"]),
        kind=kind,
        updated_at=updated_at,
        sequence_number=extract_sequence_number(subject_url),
        reason=payload.get("reason"),
        is_unread=bool(payload.get("unread", False)),
        target_url=html_url_for_subject(subject_url, kind),
        group_url=repository.get("html_url"),
        is_subscribed=True,
    )
