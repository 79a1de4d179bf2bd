from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

from .. import db
from ..models import NotificationItem, SyncMarkers
from ..utils import format_iso8601, now_utc, optional_iso8601


class CacheStore:
    """Durable state for the notification cache.

    Holds four records: the cached snapshot, the done tombstones, the hidden
    group names and the sync markers. Every method is synchronous; callers
    sharing one store across threads serialize access themselves.
    """

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        check_same_thread: bool = False,
    ):
        self.db_path = Path(db_path).expanduser()
        self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
        db.initialize_schema(self.conn)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> CacheStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # Snapshot

    def get(self) -> dict[str, NotificationItem] | None:
        meta = self.conn.execute("SELECT written_at FROM snapshot_meta WHERE id = 1").fetchone()
        if meta is None:
            return None
        rows = self.conn.execute(
            "SELECT id, payload_json FROM cached_items ORDER BY updated_at DESC"
        ).fetchall()
        items: dict[str, NotificationItem] = {}
        for row in rows:
            payload = db.from_json(row["payload_json"])
            if not payload:
                continue
            items[str(row["id"])] = NotificationItem.from_dict(payload)
        return items

    def put(self, items: dict[str, NotificationItem] | Iterable[NotificationItem]) -> None:
        with self.conn:
            self._replace_snapshot(items)

    def commit_sync(
        self,
        items: dict[str, NotificationItem] | Iterable[NotificationItem],
        markers: SyncMarkers,
    ) -> None:
        """Replace the snapshot and the markers in a single transaction."""

        with self.conn:
            self._replace_snapshot(items)
            self._write_markers(markers)

    def update_item(self, item: NotificationItem) -> bool:
        with self.conn:
            cur = self.conn.execute(
                "UPDATE cached_items SET updated_at = ?, payload_json = ? WHERE id = ?",
                (format_iso8601(item.updated_at), db.to_json(item.to_dict()), item.id),
            )
        return cur.rowcount > 0

    def clear_snapshot(self) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM cached_items")
            self.conn.execute("DELETE FROM snapshot_meta")

    def _replace_snapshot(
        self, items: dict[str, NotificationItem] | Iterable[NotificationItem]
    ) -> None:
        values = list(items.values()) if isinstance(items, dict) else list(items)
        self.conn.execute("DELETE FROM cached_items")
        self.conn.executemany(
            "INSERT OR REPLACE INTO cached_items(id, updated_at, payload_json) VALUES (?, ?, ?)",
            [
                (item.id, format_iso8601(item.updated_at), db.to_json(item.to_dict()))
                for item in values
            ],
        )
        self.conn.execute(
            """
            INSERT INTO snapshot_meta(id, written_at, item_count)
            VALUES (1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                written_at = excluded.written_at,
                item_count = excluded.item_count
            """,
            (format_iso8601(now_utc()), len(values)),
        )

    # Done tombstones

    def mark_done(self, item_id: str) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR IGNORE INTO done_items(id, done_at) VALUES (?, ?)",
                (item_id, format_iso8601(now_utc())),
            )

    def is_done(self, item_id: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM done_items WHERE id = ?", (item_id,)).fetchone()
        return row is not None

    def done_ids(self) -> set[str]:
        rows = self.conn.execute("SELECT id FROM done_items").fetchall()
        return {str(row["id"]) for row in rows}

    def clear_done(self) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM done_items")

    # Hidden groups

    def hide_group(self, name: str) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR IGNORE INTO hidden_groups(name, hidden_at) VALUES (?, ?)",
                (name, format_iso8601(now_utc())),
            )

    def unhide_group(self, name: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM hidden_groups WHERE name = ?", (name,))

    def hidden_groups(self) -> set[str]:
        rows = self.conn.execute("SELECT name FROM hidden_groups").fetchall()
        return {str(row["name"]) for row in rows}

    def clear_hidden_groups(self) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM hidden_groups")

    # Sync markers

    def get_sync_markers(self) -> SyncMarkers:
        row = self.conn.execute(
            "SELECT last_fetch_at, last_seen_updated_at FROM sync_markers WHERE id = 1"
        ).fetchone()
        if row is None:
            return SyncMarkers()
        return SyncMarkers(
            last_fetch_at=optional_iso8601(row["last_fetch_at"]),
            last_seen_updated_at=optional_iso8601(row["last_seen_updated_at"]),
        )

    def set_sync_markers(self, markers: SyncMarkers) -> None:
        with self.conn:
            self._write_markers(markers)

    def clear_sync_markers(self) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM sync_markers")

    def _write_markers(self, markers: SyncMarkers) -> None:
        self.conn.execute(
            """
            INSERT INTO sync_markers(id, last_fetch_at, last_seen_updated_at)
            VALUES (1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                last_fetch_at = excluded.last_fetch_at,
                last_seen_updated_at = excluded.last_seen_updated_at
            """,
            (
                format_iso8601(markers.last_fetch_at) if markers.last_fetch_at else None,
                format_iso8601(markers.last_seen_updated_at)
                if markers.last_seen_updated_at
                else None,
            ),
        )

    def reset_all(self) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM cached_items")
            self.conn.execute("DELETE FROM snapshot_meta")
            self.conn.execute("DELETE FROM done_items")
            self.conn.execute("DELETE FROM hidden_groups")
            self.conn.execute("DELETE FROM sync_markers")

    def stats(self) -> dict[str, int]:
        def count(table: str) -> int:
            return int(self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])

        return {
            "cached_items": count("cached_items"),
            "done_items": count("done_items"),
            "hidden_groups": count("hidden_groups"),
        }
