from __future__ import annotations

import datetime as dt
import enum
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, wait
from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import Unauthorized
from ..models import NotificationItem, SyncMarkers, apply_patch
from ..store import CacheStore
from ..utils import now_utc
from .http_client import PAGE_SIZE

logger = logging.getLogger(__name__)

Listener = Callable[[list[NotificationItem]], None]
CredentialProvider = Callable[[], str | None]


class PageFetcher(Protocol):
    def fetch_page(self, token: str | None, page: int) -> list[NotificationItem]: ...

    def mark_read(self, token: str | None, item_id: str) -> None: ...

    def archive(self, token: str | None, item_id: str) -> None: ...

    def mark_all_read(self, token: str | None) -> None: ...

    def set_subscription(self, token: str | None, item_id: str, subscribed: bool) -> None: ...

    def get_subscription(self, token: str | None, item_id: str) -> bool: ...


class SyncStatus(str, enum.Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncState:
    status: SyncStatus = SyncStatus.IDLE
    last_error: BaseException | None = None

    @classmethod
    def idle(cls) -> SyncState:
        return cls(SyncStatus.IDLE)

    @classmethod
    def syncing(cls) -> SyncState:
        return cls(SyncStatus.SYNCING)

    @classmethod
    def failed(cls, error: BaseException) -> SyncState:
        return cls(SyncStatus.FAILED, error)


def visible_items(
    snapshot: dict[str, NotificationItem] | None,
    done_ids: set[str],
    hidden_groups: set[str],
) -> list[NotificationItem]:
    """Snapshot minus tombstones minus hidden groups, newest first."""

    if not snapshot:
        return []
    items = [
        item
        for item in snapshot.values()
        if item.id not in done_ids and item.group not in hidden_groups
    ]
    items.sort(key=lambda item: item.updated_at, reverse=True)
    return items


def merge_snapshot(
    previous: dict[str, NotificationItem] | None,
    fetched: Iterable[NotificationItem],
    patches: Mapping[str, Mapping[str, Any]] | None = None,
) -> dict[str, NotificationItem]:
    """Union of ``previous`` and ``fetched`` keyed by id; fetched entries win.

    The list endpoint carries no subscription state, so a fetched item keeps
    the ``is_subscribed`` flag of the copy it replaces. ``patches`` holds
    mutations confirmed upstream after the pages were requested; they are
    applied on top of the fetched copies.
    """

    merged = dict(previous or {})
    patches = patches or {}
    seen: set[str] = set()
    for item in fetched:
        # Pages are newest first; an id repeated on a later page is the older copy.
        if item.id in seen:
            continue
        seen.add(item.id)
        cached = merged.get(item.id)
        if cached is not None and cached.is_subscribed != item.is_subscribed:
            item = apply_patch(item, is_subscribed=cached.is_subscribed)
        if item.id in patches:
            item = apply_patch(item, **patches[item.id])
        merged[item.id] = item
    return merged


def advance_markers(
    markers: SyncMarkers, fetched: list[NotificationItem], now: dt.datetime
) -> SyncMarkers:
    high_water = markers.last_seen_updated_at
    if fetched:
        newest = max(item.updated_at for item in fetched)
        if high_water is None or newest > high_water:
            high_water = newest
    return SyncMarkers(last_fetch_at=now, last_seen_updated_at=high_water)


class SyncCoordinator:
    """Serializes syncs and single-item mutations over one CacheStore.

    ``self._lock`` guards every store access. Upstream requests run without
    it, so mutations on other items proceed while a sync is fetching. At most
    one sync is in flight; concurrent callers share its future.

    Publication holds ``self._publish_lock`` and recomputes the visible set
    inside it, so the last set delivered to listeners is never older than
    the store. Lock order is publish lock, then store lock.
    """

    def __init__(
        self,
        store: CacheStore,
        fetcher: PageFetcher,
        credentials: CredentialProvider,
        *,
        clock: Callable[[], dt.datetime] = now_utc,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self._credentials = credentials
        self._clock = clock
        self._lock = threading.RLock()
        self._publish_lock = threading.RLock()
        self._state_lock = threading.Lock()
        self._state = SyncState.idle()
        self._inflight: Future[list[NotificationItem]] | None = None
        self._pending: set[tuple[str, str]] = set()
        self._listeners: list[Listener] = []
        # Bumped by reset(); a sync started under an older generation is discarded.
        self._generation = 0
        # Fields confirmed upstream since the running sync started, by item id.
        self._local_patches: dict[str, dict[str, Any]] = {}

    # State and observers

    @property
    def state(self) -> SyncState:
        with self._state_lock:
            return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._state_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._state_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish_visible(self) -> list[NotificationItem]:
        with self._publish_lock:
            with self._lock:
                items = self._visible_locked()
            with self._state_lock:
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(list(items))
                except Exception:
                    logger.exception("visible-set listener failed")
        return items

    def _token(self) -> str:
        token = self._credentials()
        if not token:
            raise Unauthorized("missing credential")
        return token

    # Sync

    def start_sync(self) -> Future[list[NotificationItem]]:
        """Trigger a sync without waiting; joins the in-flight one if any."""

        with self._state_lock:
            if self._inflight is not None:
                return self._inflight
            future: Future[list[NotificationItem]] = Future()
            future.set_running_or_notify_cancel()
            self._inflight = future
            self._state = SyncState.syncing()
        worker = threading.Thread(
            target=self._run_sync, args=(future,), name="gitty-sync", daemon=True
        )
        worker.start()
        return future

    def sync(self, timeout: float | None = None) -> list[NotificationItem]:
        """Run (or join) a sync and return the resulting visible set.

        A ``TimeoutError`` only abandons the wait: the sync itself still
        completes and commits.
        """

        return self.start_sync().result(timeout=timeout)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no sync is in flight. Returns False on timeout."""

        with self._state_lock:
            future = self._inflight
        if future is None:
            return True
        done, _ = wait([future], timeout=timeout)
        return bool(done)

    def _run_sync(self, future: Future[list[NotificationItem]]) -> None:
        try:
            committed = self._perform_sync()
        except Exception as exc:
            logger.warning("sync failed: %s", exc)
            with self._state_lock:
                self._state = SyncState.failed(exc)
                self._inflight = None
            future.set_exception(exc)
            return
        with self._state_lock:
            self._state = SyncState.idle()
            self._inflight = None
        if committed:
            items = self._publish_visible()
        else:
            items = self.visible()
        future.set_result(items)

    def _perform_sync(self) -> bool:
        token = self._token()
        with self._lock:
            generation = self._generation
            self._local_patches.clear()
            markers = self.store.get_sync_markers()
        high_water = markers.last_seen_updated_at

        fetched: list[NotificationItem] = []
        page = 1
        while True:
            batch = self.fetcher.fetch_page(token, page)
            if not batch:
                break
            fetched.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
            if high_water is not None and batch[-1].updated_at <= high_water:
                break
            page += 1
        logger.info("fetched %d notifications over %d page(s)", len(fetched), page)

        with self._lock:
            if generation != self._generation:
                logger.info("cache was reset during sync; discarding fetched pages")
                return False
            previous = self.store.get()
            merged = merge_snapshot(previous, fetched, self._local_patches)
            new_markers = advance_markers(self.store.get_sync_markers(), fetched, self._clock())
            self.store.commit_sync(merged, new_markers)
            self._local_patches.clear()
        return True

    def _visible_locked(
        self, snapshot: dict[str, NotificationItem] | None = None
    ) -> list[NotificationItem]:
        if snapshot is None:
            snapshot = self.store.get()
        return visible_items(snapshot, self.store.done_ids(), self.store.hidden_groups())

    # Queries

    def visible(self, repository: str | None = None) -> list[NotificationItem]:
        with self._lock:
            items = self._visible_locked()
        if repository:
            items = [item for item in items if item.group_path == repository]
        return items

    def repositories(self) -> list[str]:
        """Distinct repositories of the visible set, most recently active first."""

        ordered: list[str] = []
        seen: set[str] = set()
        for item in self.visible():
            if item.group_path not in seen:
                seen.add(item.group_path)
                ordered.append(item.group_path)
        return ordered

    def groups(self) -> list[str]:
        with self._lock:
            snapshot = self.store.get() or {}
        return sorted({item.group for item in snapshot.values() if item.group})

    def unread_count(self) -> int:
        return sum(1 for item in self.visible() if item.is_unread)

    def get_item(self, item_id: str) -> NotificationItem:
        with self._lock:
            snapshot = self.store.get() or {}
        try:
            return snapshot[item_id]
        except KeyError:
            raise KeyError(item_id) from None

    # Single-item mutations

    def _claim(self, action: str, item_id: str) -> bool:
        key = (action, item_id)
        with self._lock:
            if key in self._pending:
                return False
            self._pending.add(key)
            return True

    def _release(self, action: str, item_id: str) -> None:
        with self._lock:
            self._pending.discard((action, item_id))

    def mark_done(self, item_id: str) -> bool:
        """Archive upstream, then tombstone locally.

        Returns False when the id is already done or a mark-done for it is in
        flight; no request is made in either case.
        """

        with self._lock:
            if self.store.is_done(item_id):
                return False
            if not self._claim("done", item_id):
                return False
            generation = self._generation
        try:
            self.fetcher.archive(self._token(), item_id)
            with self._lock:
                # A reset in the meantime forgot the account this id belonged to.
                if generation == self._generation:
                    self.store.mark_done(item_id)
        finally:
            self._release("done", item_id)
        self._publish_visible()
        return True

    def mark_as_read(self, item_id: str) -> bool:
        item = self.get_item(item_id)
        if not item.is_unread:
            return False
        if not self._claim("read", item_id):
            return False
        try:
            self.fetcher.mark_read(self._token(), item_id)
            self._patch(item_id, is_unread=False)
        finally:
            self._release("read", item_id)
        self._publish_visible()
        return True

    def toggle_subscription(self, item_id: str) -> bool:
        """Flip the thread subscription; returns the new ``is_subscribed``.

        While a toggle for the same id is in flight, returns the state that
        call is setting without issuing another request.
        """

        item = self.get_item(item_id)
        subscribed = not item.is_subscribed
        if not self._claim("subscription", item_id):
            return subscribed
        try:
            self.fetcher.set_subscription(self._token(), item_id, subscribed)
            self._patch(item_id, is_subscribed=subscribed)
        finally:
            self._release("subscription", item_id)
        self._publish_visible()
        return subscribed

    def refresh_subscription(self, item_id: str) -> bool:
        item = self.get_item(item_id)
        subscribed = self.fetcher.get_subscription(self._token(), item_id)
        if subscribed != item.is_subscribed:
            self._patch(item_id, is_subscribed=subscribed)
            self._publish_visible()
        return subscribed

    def mark_all_read(self) -> int:
        self.fetcher.mark_all_read(self._token())
        with self._lock:
            snapshot = self.store.get() or {}
            changed = 0
            for item in snapshot.values():
                if item.is_unread:
                    self.store.update_item(apply_patch(item, is_unread=False))
                    self._local_patches.setdefault(item.id, {})["is_unread"] = False
                    changed += 1
        self._publish_visible()
        return changed

    def _patch(self, item_id: str, **fields: Any) -> None:
        with self._lock:
            snapshot = self.store.get() or {}
            current = snapshot.get(item_id)
            if current is None:
                return
            self.store.update_item(apply_patch(current, **fields))
            # A running sync may hold a copy fetched before this change.
            self._local_patches.setdefault(item_id, {}).update(fields)

    # Filters

    def hide_group(self, name: str) -> None:
        with self._lock:
            self.store.hide_group(name)
        self._publish_visible()

    def unhide_group(self, name: str) -> None:
        with self._lock:
            self.store.unhide_group(name)
        self._publish_visible()

    def hidden_groups(self) -> set[str]:
        with self._lock:
            return self.store.hidden_groups()

    def markers(self) -> SyncMarkers:
        with self._lock:
            return self.store.get_sync_markers()

    def reset(self) -> None:
        """Forget everything (sign-out).

        A sync already fetching when this runs finishes without committing.
        """

        with self._lock:
            self._generation += 1
            self._local_patches.clear()
            self.store.reset_all()
        with self._state_lock:
            if self._inflight is None:
                self._state = SyncState.idle()
        self._publish_visible()
