"""
Per-request options: retry policy, endpoint prefix, timeouts and socket settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from hbase_rest.constants import (
    DEFAULT_GATEWAY_PORT,
    DEFAULT_RECEIVE_BUFFER_SIZE,
    DEFAULT_TIMEOUT_MS,
    REST_ENDPOINT_BASE,
)
from hbase_rest.retry import RetryPolicy


@dataclass
class RequestOptions:
    """
    Options applied to a single gateway call (and to every retry of it).

    alternative_endpoint is the path prefix put in front of every request path;
    "hbaserest/" for the cluster gateway, "" or "/" for direct worker-node access.
    """

    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    alternative_endpoint: str = REST_ENDPOINT_BASE
    keep_alive: bool = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    receive_buffer_size: int = DEFAULT_RECEIVE_BUFFER_SIZE
    port: int = DEFAULT_GATEWAY_PORT
    alternative_host: str | None = None
    additional_headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def default(cls) -> RequestOptions:
        return cls()

    @property
    def timeout_sec(self) -> float:
        return self.timeout_ms / 1000.0

    def with_endpoint(self, alternative_endpoint: str) -> RequestOptions:
        """Copy of these options with a different path prefix."""
        return replace(self, alternative_endpoint=alternative_endpoint)

    def validate(self) -> None:
        """Raise ValueError if any option is out of range."""
        if self.retry_policy is None:
            raise ValueError("retry_policy is required")
        for name in ("timeout_ms", "receive_buffer_size", "port"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.alternative_endpoint is None:
            raise ValueError("alternative_endpoint must be a string (use '' for none)")
