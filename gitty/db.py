from __future__ import annotations

import json
import os
import sqlite3
from pathlib import Path
from typing import Any

DEFAULT_DB_PATH = Path("~/.gitty/gitty.sqlite").expanduser()
SCHEMA_VERSION = 1


def resolve_db_path(db_path: Path | str | None = None) -> Path:
    if db_path:
        return Path(db_path).expanduser()
    env_path = os.getenv("GITTY_DB")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_DB_PATH


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    version = int(conn.execute("PRAGMA user_version").fetchone()[0])
    if version >= SCHEMA_VERSION:
        return
    _initialize_schema_v1(conn)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()


def _initialize_schema_v1(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS cached_items (
            id TEXT PRIMARY KEY,
            updated_at TEXT NOT NULL,
            payload_json TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_cached_items_updated ON cached_items(updated_at DESC);

        CREATE TABLE IF NOT EXISTS snapshot_meta (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            written_at TEXT NOT NULL,
            item_count INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS done_items (
            id TEXT PRIMARY KEY,
            done_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS hidden_groups (
            name TEXT PRIMARY KEY,
            hidden_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS sync_markers (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            last_fetch_at TEXT,
            last_seen_updated_at TEXT
        );
        """
    )


def to_json(data: Any) -> str:
    if data is None:
        payload: Any = {}
    else:
        payload = data
    return json.dumps(payload, ensure_ascii=False)


def from_json(text: str | None) -> dict[str, Any]:
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {}
