from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/gitty/config.json").expanduser()

DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_API_VERSION = "2022-11-28"
DEFAULT_REFRESH_INTERVAL_S = 60
ALLOWED_REFRESH_INTERVALS = (30, 60, 120, 300, 600, 1800)

CONFIG_ENV_OVERRIDES = {
    "api_base_url": "GITTY_API_BASE_URL",
    "api_version": "GITTY_API_VERSION",
    "request_timeout_s": "GITTY_REQUEST_TIMEOUT_S",
    "refresh_interval_s": "GITTY_REFRESH_INTERVAL_S",
    "db_path": "GITTY_DB",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("GITTY_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class GittyConfig:
    api_base_url: str = DEFAULT_API_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    request_timeout_s: int = 30
    refresh_interval_s: int = DEFAULT_REFRESH_INTERVAL_S
    db_path: str | None = None
    daemon_log: str = "~/.gitty/sync-daemon.log"


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _check_interval(value: int) -> int:
    if value in ALLOWED_REFRESH_INTERVALS:
        return value
    warnings.warn(
        f"Unsupported refresh interval {value!r}; using {DEFAULT_REFRESH_INTERVAL_S}",
        RuntimeWarning,
        stacklevel=2,
    )
    return DEFAULT_REFRESH_INTERVAL_S


def load_config(path: Path | None = None) -> GittyConfig:
    cfg = GittyConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text() or "{}")
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    cfg.refresh_interval_s = _check_interval(cfg.refresh_interval_s)
    return cfg


def _apply_dict(cfg: GittyConfig, data: dict[str, Any]) -> GittyConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in {"request_timeout_s", "refresh_interval_s"}:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        setattr(cfg, key, value)
    return cfg


def _apply_env(cfg: GittyConfig) -> GittyConfig:
    cfg.api_base_url = os.getenv("GITTY_API_BASE_URL", cfg.api_base_url)
    cfg.api_version = os.getenv("GITTY_API_VERSION", cfg.api_version)
    cfg.request_timeout_s = _parse_int(
        os.getenv("GITTY_REQUEST_TIMEOUT_S"), cfg.request_timeout_s, key="request_timeout_s"
    )
    cfg.refresh_interval_s = _parse_int(
        os.getenv("GITTY_REFRESH_INTERVAL_S"), cfg.refresh_interval_s, key="refresh_interval_s"
    )
    cfg.db_path = os.getenv("GITTY_DB", cfg.db_path)
    cfg.daemon_log = os.getenv("GITTY_DAEMON_LOG", cfg.daemon_log)
    return cfg
