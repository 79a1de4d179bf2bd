from __future__ import annotations

import logging
from typing import Any

import httpx

from .. import __version__
from ..config import DEFAULT_API_BASE_URL, DEFAULT_API_VERSION, GittyConfig
from ..errors import MalformedResponse, TransportError, Unauthorized, error_for_status
from ..models import NotificationItem, item_from_api

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
DEFAULT_TIMEOUT_S = 30.0


def build_base_url(address: str) -> str:
    trimmed = address.strip().rstrip("/")
    if not trimmed:
        return DEFAULT_API_BASE_URL
    if "://" in trimmed:
        return trimmed
    return f"https://{trimmed}"


class GitHubClient:
    """Bounded requests against the GitHub notifications REST API.

    Every call is a single request: failures are classified into the
    ``gitty.errors`` taxonomy and surfaced to the caller without retrying.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        *,
        api_version: str = DEFAULT_API_VERSION,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = build_base_url(base_url)
        self.api_version = api_version
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout_s,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": api_version,
                "User-Agent": f"gitty/{__version__}",
            },
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, cfg: GittyConfig, *, transport: httpx.BaseTransport | None = None
    ) -> GitHubClient:
        return cls(
            cfg.api_base_url,
            api_version=cfg.api_version,
            timeout_s=float(cfg.request_timeout_s),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        token: str | None,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        if not token:
            raise Unauthorized("missing credential")
        try:
            response = self._client.request(
                method,
                path,
                params=params,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"request timed out: {method} {path}") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"{exc.__class__.__name__}: {exc}") from exc
        if not response.is_success:
            logger.debug("github %s %s -> %s", method, path, response.status_code)
            raise error_for_status(response.status_code, _error_detail(response))
        return response

    def fetch_page(self, token: str | None, page: int) -> list[NotificationItem]:
        response = self._request(
            "GET",
            "/notifications",
            token,
            params={"all": "true", "per_page": PAGE_SIZE, "page": page},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponse("notifications body is not JSON") from exc
        if not isinstance(payload, list):
            raise MalformedResponse(f"unexpected_json_type: {type(payload).__name__}")
        try:
            return [item_from_api(entry) for entry in payload]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise MalformedResponse(f"invalid notification entry: {exc}") from exc

    def mark_read(self, token: str | None, item_id: str) -> None:
        self._request("PATCH", f"/notifications/threads/{item_id}", token)

    def archive(self, token: str | None, item_id: str) -> None:
        self._request("DELETE", f"/notifications/threads/{item_id}", token)

    def mark_all_read(self, token: str | None) -> None:
        self._request("PUT", "/notifications", token)

    def set_subscription(self, token: str | None, item_id: str, subscribed: bool) -> None:
        self._request(
            "PUT",
            f"/notifications/threads/{item_id}/subscription",
            token,
            body={"ignored": not subscribed},
        )

    def get_subscription(self, token: str | None, item_id: str) -> bool:
        response = self._request("GET", f"/notifications/threads/{item_id}/subscription", token)
        try:
            payload = response.json()
            return bool(payload["subscribed"])
        except (ValueError, KeyError, TypeError) as exc:
            raise MalformedResponse("subscription body missing 'subscribed'") from exc

    def validate_token(self, token: str | None) -> bool:
        if not token:
            return False
        try:
            response = self._client.get("/user", headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as exc:
            logger.debug("token validation failed: %s", exc)
            return False
        return response.status_code == 200


def _error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        snippet = response.text[:240].strip()
        return snippet or None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return None
