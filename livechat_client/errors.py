"""Exception hierarchy for the live chat client."""

from __future__ import annotations

from typing import Any


class LiveChatError(Exception):
    """Base exception for live chat client errors."""
    pass


class ConfigurationError(LiveChatError):
    """Invalid or incomplete service identity or retry policy."""
    pass


class ValidationError(LiveChatError):
    """Request rejected locally before any network call."""
    pass


class LiveChatHTTPError(LiveChatError):
    """
    A request reached the transport and failed.

    Keeps enough of the request and response around for telemetry.
    Run it through ``sanitizer.sanitize_error`` before logging it.
    """

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        url: str | None = None,
        request_headers: dict[str, str] | None = None,
        status_code: int | None = None,
        response_headers: dict[str, str] | None = None,
        response_body: Any = None,
    ):
        super().__init__(message)
        self.method = method
        self.url = url
        self.request_headers = dict(request_headers or {})
        self.status_code = status_code
        self.response_headers = dict(response_headers or {})
        self.response_body = response_body


class TransientNetworkError(LiveChatHTTPError):
    """Connectivity failure, timeout, 5xx or unclassified non-2xx response."""
    pass


class RateLimitError(LiveChatHTTPError):
    """The service answered 429 Too Many Requests."""
    pass


class RetryBudgetExceededError(LiveChatError):
    """Every attempt allowed by the retry policy failed."""

    def __init__(self, message: str, max_attempts: int, last_error: Exception | None = None):
        super().__init__(message)
        self.max_attempts = max_attempts
        self.last_error = last_error


class TerminalEmptyResultError(LiveChatError):
    """No content on a reconnect request: there is no session to resume."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RecordNotFoundError(LiveChatError):
    """The service answered but reported that the record does not exist."""
    pass
