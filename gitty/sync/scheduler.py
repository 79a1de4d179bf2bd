from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from ..config import ALLOWED_REFRESH_INTERVALS, DEFAULT_REFRESH_INTERVAL_S

logger = logging.getLogger(__name__)


class Syncable(Protocol):
    def sync(self, timeout: float | None = None) -> object: ...


def validate_interval(interval_s: int) -> int:
    if interval_s not in ALLOWED_REFRESH_INTERVALS:
        allowed = ", ".join(str(value) for value in ALLOWED_REFRESH_INTERVALS)
        raise ValueError(f"refresh interval must be one of {allowed} seconds")
    return interval_s


def next_deadline(deadline: float, interval_s: float, now: float) -> float:
    """Advance ``deadline`` by whole intervals until it lies in the future."""

    deadline += interval_s
    if deadline <= now:
        missed = int((now - deadline) // interval_s) + 1
        deadline += missed * interval_s
    return deadline


class RefreshScheduler:
    """Calls ``coordinator.sync()`` every ``interval_s`` seconds on a daemon thread."""

    def __init__(
        self,
        coordinator: Syncable,
        interval_s: int = DEFAULT_REFRESH_INTERVAL_S,
        *,
        run_immediately: bool = False,
        join_timeout_s: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.coordinator = coordinator
        self._interval_s = validate_interval(interval_s)
        self._run_immediately = run_immediately
        self._join_timeout_s = join_timeout_s
        self._clock = clock
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None
        self.ticks = 0

    @property
    def interval_s(self) -> int:
        return self._interval_s

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._start_locked()

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    def set_interval(self, interval_s: int) -> None:
        validate_interval(interval_s)
        with self._lock:
            was_running = self._thread is not None and self._thread.is_alive()
            self._stop_locked()
            self._interval_s = interval_s
            if was_running:
                self._start_locked()
        logger.info("refresh interval set to %ss", interval_s)

    def _start_locked(self) -> None:
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._loop,
            args=(stop_event, self._interval_s),
            name="gitty-refresh",
            daemon=True,
        )
        self._stop_event = stop_event
        self._thread = thread
        thread.start()

    def _stop_locked(self) -> None:
        thread, stop_event = self._thread, self._stop_event
        self._thread = None
        self._stop_event = None
        if stop_event is None or thread is None:
            return
        stop_event.set()
        if thread is not threading.current_thread():
            thread.join(self._join_timeout_s)

    def _loop(self, stop_event: threading.Event, interval_s: int) -> None:
        if self._run_immediately:
            self._tick()
        deadline = self._clock() + interval_s
        while not stop_event.wait(max(0.0, deadline - self._clock())):
            self._tick()
            deadline = next_deadline(deadline, interval_s, self._clock())

    def _tick(self) -> None:
        self.ticks += 1
        try:
            self.coordinator.sync()
        except Exception as exc:
            logger.warning("scheduled sync failed: %s", exc)
