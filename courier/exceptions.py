"""Exception hierarchy for the courier Bot API client."""

from typing import Any, Dict, Iterable, Optional


class CourierError(Exception):
    """Base class for every error raised by the library itself."""


class APIException(CourierError):
    """Raised when the Bot API rejects a call.

    Covers both non-2xx HTTP responses and 2xx responses whose payload
    carries ``"ok": false``.

    Attributes:
        status_code: HTTP status code returned by the API.
        response_body: Raw response body as a dict, when available.
        description: Human-readable description from the remote payload.
        error_code: Remote ``error_code`` when present, else the status code.
        retry_after: Seconds to wait before retrying, when flood control applies.
    """

    def __init__(self, status_code: int, response_body: Optional[Dict[str, Any]] = None) -> None:
        self.status_code = status_code
        self.response_body = response_body or {}
        self.description: str = self.response_body.get("description") or "Unknown error"
        self.error_code: int = self.response_body.get("error_code") or status_code
        parameters = self.response_body.get("parameters") or {}
        self.retry_after: Optional[int] = parameters.get("retry_after")
        super().__init__(f"API error {status_code}: {self.description}")


class MissingTokenError(CourierError):
    """Raised when a remote call is attempted without a bot token."""

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"You can't call .{method} without token")


class UnsupportedContentError(CourierError, TypeError):
    """Raised when ``send`` or a media group receives a variant it cannot send."""


class UnsupportedOptionError(CourierError, ValueError):
    """Raised when options contain keys the target method does not accept."""

    def __init__(self, method: str, keys: Iterable[str]) -> None:
        self.method = method
        self.keys = sorted(keys)
        super().__init__(f"Unsupported option(s) for {method}: {', '.join(self.keys)}")
