"""Exceptions raised by the users resource client."""
from __future__ import annotations

from typing import Optional


class UserResourceError(RuntimeError):
    """Raised when a request against the users resource fails.

    ``str(exc)`` is the single human-readable message surfaced to callers.
    """


class NetworkFailure(UserResourceError):
    """Raised when no response reached the client (DNS, connection, timeout)."""


class HttpFailure(UserResourceError):
    """Raised when the server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Error Code: {status_code}\nMessage: {message}")
        self.status_code = status_code


class ResponseDecodeError(UserResourceError):
    """Raised when a response body cannot be decoded into user records."""


class ConfigurationError(ValueError):
    """Raised when dashboard settings are missing or invalid."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        if source:
            message = f"{message} ({source})"
        super().__init__(message)
        self.source = source


def http_failure_message(url: str, status_code: int, reason: str) -> str:
    """Describe a failed response the way the dashboard always has."""

    text = f"Http failure response for {url}: {status_code}"
    if reason:
        text += f" {reason}"
    return text


__all__ = [
    "ConfigurationError",
    "HttpFailure",
    "NetworkFailure",
    "ResponseDecodeError",
    "UserResourceError",
    "http_failure_message",
]
