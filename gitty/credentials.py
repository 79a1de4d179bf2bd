from __future__ import annotations

import os

TOKEN_ENV_VARS = ("GITTY_TOKEN", "GITHUB_TOKEN")
TOKEN_PREFIXES = ("ghp_", "github_pat_")


def env_credential_provider() -> str | None:
    """Return the first non-empty token from the environment, if any."""

    for name in TOKEN_ENV_VARS:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def looks_like_token(value: str | None) -> bool:
    # Format check only; the server decides whether the token is valid.
    if not value:
        return False
    return value.strip().startswith(TOKEN_PREFIXES)
