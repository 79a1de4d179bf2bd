from __future__ import annotations

import json

import httpx
import pytest

from gitty import __version__
from gitty.errors import (
    Forbidden,
    HttpError,
    MalformedResponse,
    NotFound,
    TransportError,
    Unauthorized,
)
from gitty.models import ItemKind
from gitty.sync.http_client import PAGE_SIZE, GitHubClient, build_base_url


def _entry(thread_id: str, updated_at: str = "2024-05-01T12:00:00Z") -> dict:
    return {
        "id": thread_id,
        "unread": True,
        "reason": "subscribed",
        "updated_at": updated_at,
        "subject": {
            "title": f"Issue {thread_id}",
            "url": f"https://api.github.com/repos/acme/widgets/issues/{thread_id}",
            "type": "Issue",
        },
        "repository": {"full_name": "acme/widgets", "html_url": "https://github.com/acme/widgets"},
    }


def _client(handler) -> GitHubClient:
    return GitHubClient(transport=httpx.MockTransport(handler))


def test_fetch_page_sends_headers_and_paging_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[_entry("1"), _entry("2", "2024-05-01T11:00:00Z")])

    with _client(handler) as client:
        items = client.fetch_page("ghp_secret", 3)

    assert [item.id for item in items] == ["1", "2"]
    assert items[0].kind is ItemKind.ISSUE
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/notifications"
    assert request.url.params["all"] == "true"
    assert request.url.params["per_page"] == str(PAGE_SIZE)
    assert request.url.params["page"] == "3"
    assert request.headers["Authorization"] == "Bearer ghp_secret"
    assert request.headers["Accept"] == "application/vnd.github+json"
    assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"
    assert request.headers["User-Agent"] == f"gitty/{__version__}"


def test_empty_page_is_end_of_data() -> None:
    with _client(lambda request: httpx.Response(200, json=[])) as client:
        assert client.fetch_page("ghp_secret", 1) == []


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(401, Unauthorized), (403, Forbidden), (404, NotFound), (500, HttpError), (502, HttpError)],
)
def test_status_codes_map_to_errors(status: int, error_type: type[Exception]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"message": "nope"})

    with _client(handler) as client, pytest.raises(error_type) as excinfo:
        client.fetch_page("ghp_secret", 1)
    assert excinfo.value.status_code == status


def test_http_error_user_message_includes_code() -> None:
    with _client(lambda request: httpx.Response(500, text="boom")) as client:
        with pytest.raises(HttpError) as excinfo:
            client.archive("ghp_secret", "1")
    assert excinfo.value.user_message == "HTTP error: 500"
    assert excinfo.value.detail == "boom"


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ReadTimeout("timed out"),
        httpx.ConnectError("connection refused"),
    ],
)
def test_transport_failures_map_to_transport_error(exc: Exception) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    with _client(handler) as client, pytest.raises(TransportError):
        client.fetch_page("ghp_secret", 1)


def test_undecodable_body_is_malformed() -> None:
    with _client(lambda request: httpx.Response(200, content=b"<html>")) as client:
        with pytest.raises(MalformedResponse):
            client.fetch_page("ghp_secret", 1)

    with _client(lambda request: httpx.Response(200, json={"items": []})) as client:
        with pytest.raises(MalformedResponse):
            client.fetch_page("ghp_secret", 1)

    broken = _entry("1")
    del broken["subject"]
    with _client(lambda request: httpx.Response(200, json=[broken])) as client:
        with pytest.raises(MalformedResponse):
            client.fetch_page("ghp_secret", 1)


def test_missing_token_never_hits_the_network() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[])

    with _client(handler) as client, pytest.raises(Unauthorized):
        client.fetch_page(None, 1)
    assert calls == []


def test_thread_actions_use_expected_endpoints() -> None:
    seen: list[tuple[str, str, bytes]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.content))
        if request.url.path.endswith("/subscription") and request.method == "GET":
            return httpx.Response(200, json={"subscribed": False, "ignored": True})
        return httpx.Response(205)

    with _client(handler) as client:
        client.mark_read("ghp_secret", "7")
        client.archive("ghp_secret", "7")
        client.mark_all_read("ghp_secret")
        client.set_subscription("ghp_secret", "7", subscribed=False)
        subscribed = client.get_subscription("ghp_secret", "7")

    assert subscribed is False
    assert [(method, path) for method, path, _ in seen] == [
        ("PATCH", "/notifications/threads/7"),
        ("DELETE", "/notifications/threads/7"),
        ("PUT", "/notifications"),
        ("PUT", "/notifications/threads/7/subscription"),
        ("GET", "/notifications/threads/7/subscription"),
    ]
    assert json.loads(seen[3][2]) == {"ignored": True}


def test_validate_token_never_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/user"
        if request.headers["Authorization"] == "Bearer ghp_good":
            return httpx.Response(200, json={"login": "octocat"})
        return httpx.Response(401)

    with _client(handler) as client:
        assert client.validate_token("ghp_good") is True
        assert client.validate_token("ghp_bad") is False
        assert client.validate_token(None) is False

    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline")

    with _client(broken) as client:
        assert client.validate_token("ghp_good") is False


def test_build_base_url() -> None:
    assert build_base_url("") == "https://api.github.com"
    assert build_base_url("ghe.example.com/api/v3/") == "https://ghe.example.com/api/v3"
    assert build_base_url("http://localhost:8080") == "http://localhost:8080"
