from __future__ import annotations

import logging
import signal
import threading

import typer
from rich import print

from ..config import ALLOWED_REFRESH_INTERVALS, load_config
from ..logs import configure_daemon_logging
from ..sync.scheduler import RefreshScheduler, validate_interval
from .common import read_config_or_exit, require_token, write_config_or_exit

logger = logging.getLogger(__name__)


def daemon_cmd(
    *,
    runtime_from_path,
    db_path: str | None,
    interval_s: int | None,
    stop_event: threading.Event | None = None,
) -> None:
    """Run the refresh scheduler in the foreground until interrupted."""

    require_token()
    runtime = runtime_from_path(db_path)
    interval = interval_s or runtime.config.refresh_interval_s
    try:
        validate_interval(interval)
    except ValueError as exc:
        runtime.close()
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    log_path = configure_daemon_logging(runtime.config.daemon_log)
    scheduler = RefreshScheduler(runtime.coordinator, interval, run_immediately=True)
    stop = stop_event or threading.Event()

    def _handle_signal(signum, frame) -> None:
        stop.set()

    if stop_event is None:
        signal.signal(signal.SIGTERM, _handle_signal)
    print(f"[green]Refreshing every {interval}s[/green] (log: {log_path})")
    logger.info("daemon started: interval=%ss db=%s", interval, runtime.store.db_path)
    scheduler.start()
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
        # The sync worker outlives the scheduler thread; let it commit first.
        runtime.coordinator.wait_idle()
        runtime.close()
        logger.info("daemon stopped")


def interval_cmd(*, seconds: int | None) -> None:
    config_data = read_config_or_exit()
    if seconds is None:
        current = load_config().refresh_interval_s
        allowed = ", ".join(str(value) for value in ALLOWED_REFRESH_INTERVALS)
        print(f"Refresh interval: {current}s (allowed: {allowed})")
        return
    try:
        validate_interval(seconds)
    except ValueError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    config_data["refresh_interval_s"] = seconds
    write_config_or_exit(config_data)
    print(f"[green]✓ Refresh interval set to {seconds}s[/green]")
