from __future__ import annotations

from ._store import CacheStore

__all__ = ["CacheStore"]
