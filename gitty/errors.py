from __future__ import annotations


class GitHubAPIError(Exception):
    """Base class for failures talking to the notifications API."""

    status_code: int | None = None
    message = "GitHub request failed"

    def __init__(self, detail: str | None = None, *, status_code: int | None = None) -> None:
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail
        super().__init__(detail or self.message)

    @property
    def user_message(self) -> str:
        return self.message


class Unauthorized(GitHubAPIError):
    status_code = 401
    message = "Invalid or expired token. Please sign in again."


class Forbidden(GitHubAPIError):
    status_code = 403
    message = "Access forbidden. Check token permissions."


class NotFound(GitHubAPIError):
    status_code = 404
    message = "Resource not found"


class HttpError(GitHubAPIError):
    def __init__(self, status_code: int, detail: str | None = None) -> None:
        super().__init__(detail or f"HTTP error: {status_code}", status_code=status_code)

    @property
    def user_message(self) -> str:
        return f"HTTP error: {self.status_code}"


class TransportError(GitHubAPIError):
    message = "Could not reach GitHub"


class MalformedResponse(GitHubAPIError):
    message = "Failed to parse response from GitHub"


def error_for_status(status_code: int, detail: str | None = None) -> GitHubAPIError:
    if status_code == 401:
        return Unauthorized(detail)
    if status_code == 403:
        return Forbidden(detail)
    if status_code == 404:
        return NotFound(detail)
    return HttpError(status_code, detail)
