"""
Failure taxonomy for gateway calls and the retry classification built on it.
"""

from __future__ import annotations

from typing import Any


class HBaseRestError(Exception):
    """
    Base class for every failure raised by the client.
    Carries the operation name and target identifiers once annotated.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.operation: str | None = None
        self.context: dict[str, Any] = {}

    def annotate(self, operation: str, **targets: Any) -> HBaseRestError:
        """Attach operation and target identifiers (None values are skipped). Returns self."""
        if self.operation is None:
            self.operation = operation
        for key, value in targets.items():
            if value is not None and key not in self.context:
                self.context[key] = value
        return self

    def __str__(self) -> str:
        if self.operation is None and not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        prefix = self.operation or "request"
        if details:
            prefix = f"{prefix} ({details})"
        return f"{prefix}: {self.message}"


class TransportFailure(HBaseRestError):
    """Connect, timeout or name-resolution failure. Retryable."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class StatusError(HBaseRestError):
    """The gateway answered with a status the caller did not accept."""

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ServerFailure(StatusError):
    """Server-side (5xx) or otherwise unexpected status. Retryable."""


class ClientError(StatusError):
    """Malformed request (4xx). Not retryable."""


class ProtocolViolation(HBaseRestError):
    """A required response element is missing. Never retried."""


def is_retryable(exc: BaseException) -> bool:
    """Default retry classification: transport and server failures only."""
    return isinstance(exc, (TransportFailure, ServerFailure))


def status_error(
    status_code: int, body: str, description: str, expected: str
) -> StatusError:
    """
    Build the error for an unaccepted status.

    Args:
        status_code: HTTP status returned by the gateway
        body: Response body decoded as text
        description: What was being attempted (e.g. "Couldn't create table t")
        expected: Human-readable list of accepted statuses

    Returns:
        ClientError for 4xx, ServerFailure for anything else
    """
    message = (
        f"{description}! Response code was: {status_code}, expected {expected}! "
        f"Response body was: {body}"
    )
    if 400 <= status_code < 500:
        return ClientError(message, status_code, body)
    return ServerFailure(message, status_code, body)
