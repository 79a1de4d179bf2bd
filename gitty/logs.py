from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DEFAULT_DAEMON_LOG = Path("~/.gitty/sync-daemon.log")


def configure_daemon_logging(
    log_path: Path | str | None = None, *, level: int = logging.INFO
) -> Path:
    """Send ``gitty`` loggers to the daemon log file and return its path."""

    path = Path(log_path or DEFAULT_DAEMON_LOG).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger("gitty")
    root.setLevel(level)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path:
            return path
    handler = logging.FileHandler(path, encoding="utf-8", errors="ignore")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    return path


def configure_console_logging(verbose: bool = False) -> None:
    if logging.getLogger().hasHandlers():
        return
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
