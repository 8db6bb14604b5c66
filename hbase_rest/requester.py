"""
Transport requesters: one HTTP exchange against the gateway or a worker node.

Requesters send already-encoded bodies with the codec's content headers and
return the raw status, headers and body. Interpreting HBase status codes is
left to the client layer; only network-level failures are raised here, as
TransportFailure.
"""

from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import requests

from hbase_rest.codec import Codec, JsonCodec
from hbase_rest.constants import USER_AGENT
from hbase_rest.credentials import ClusterCredentials
from hbase_rest.errors import TransportFailure
from hbase_rest.load_balancer import LoadBalancer
from hbase_rest.options import RequestOptions

logger = logging.getLogger(__name__)


@dataclass
class Response:
    """Raw result of one exchange."""

    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""
    endpoint: str | None = None
    latency_sec: float = 0.0

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


def join_path(base: str, prefix: str, path: str) -> str:
    """Join base URL, endpoint prefix and request path with single slashes."""
    parts = [base.rstrip("/")]
    prefix = (prefix or "").strip("/")
    if prefix:
        parts.append(prefix)
    path = path.lstrip("/")
    url = "/".join(parts) + "/" + path
    return url


class WebRequester(ABC):
    """
    Base class for requesters.
    Owns a requests.Session for connection reuse.
    """

    def __init__(self, codec: Codec | None = None) -> None:
        self._codec = codec or JsonCodec()
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Content-Type": self._codec.content_type,
                "Accept": self._codec.content_type,
                "User-Agent": USER_AGENT,
            }
        )

    @property
    def codec(self) -> Codec:
        return self._codec

    @abstractmethod
    def issue(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        options: RequestOptions | None = None,
        query: dict[str, Any] | None = None,
    ) -> Response:
        """
        Perform one request/response exchange.

        Args:
            method: HTTP method (GET, PUT, POST, DELETE)
            path: Request path relative to the endpoint prefix (e.g. "t1/schema")
            body: Encoded request body
            options: Request options (defaults to RequestOptions())
            query: Optional query parameters

        Returns:
            Response with raw status, headers and body

        Raises:
            TransportFailure: On connect, timeout or resolution failure
        """
        ...

    def _send(
        self,
        method: str,
        url: str,
        body: bytes | None,
        options: RequestOptions,
        query: dict[str, Any] | None,
        extra_headers: dict[str, str] | None = None,
    ) -> Response:
        request_id = str(uuid.uuid4())
        headers = {"X-Request-ID": request_id}
        if not options.keep_alive:
            headers["Connection"] = "close"
        if extra_headers:
            headers.update(extra_headers)
        headers.update(options.additional_headers)

        logger.debug("Issuing request %s %s to %s", request_id, method, url)
        started = time.monotonic()
        try:
            response = self._session.request(
                method=method,
                url=url,
                data=body,
                params=query,
                headers=headers,
                timeout=options.timeout_sec,
                allow_redirects=False,
                stream=True,
            )
            try:
                chunk_size = options.receive_buffer_size or None
                content = b"".join(response.iter_content(chunk_size=chunk_size))
            finally:
                response.close()
        except requests.exceptions.Timeout as e:
            raise TransportFailure(
                f"Request {method} {url} timed out after {options.timeout_ms}ms",
                url=url,
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransportFailure(f"Request {method} {url} failed: {e}", url=url) from e

        latency = time.monotonic() - started
        logger.debug(
            "Request %s to %s completed with %d in %.3fs",
            request_id,
            url,
            response.status_code,
            latency,
        )
        return Response(
            status_code=response.status_code,
            content=content,
            headers=dict(response.headers),
            url=url,
            latency_sec=latency,
        )

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class GatewayRequester(WebRequester):
    """
    Requester bound to one cluster gateway address and its credentials.
    URL: {scheme}://{host or alternative_host}:{port}/{alternative_endpoint}{path}
    """

    def __init__(
        self, credentials: ClusterCredentials, codec: Codec | None = None
    ) -> None:
        if credentials is None:
            raise ValueError("credentials are required for gateway mode")
        super().__init__(codec)
        self._credentials = credentials
        self._auth_header = credentials.authorization_header()

    @property
    def credentials(self) -> ClusterCredentials:
        return self._credentials

    def base_url(self, options: RequestOptions) -> str:
        parsed = urlsplit(self._credentials.cluster_url)
        host = options.alternative_host or parsed.hostname or ""
        netloc = f"{host}:{options.port}" if options.port else host
        return urlunsplit((parsed.scheme, netloc, "/", "", ""))

    def issue(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        options: RequestOptions | None = None,
        query: dict[str, Any] | None = None,
    ) -> Response:
        options = options or RequestOptions()
        options.validate()
        url = join_path(self.base_url(options), options.alternative_endpoint, path)
        return self._send(method, url, body, options, query, self._auth_header)


class LoadBalancedRequester(WebRequester):
    """
    Requester that asks the load balancer for an endpoint on every call.
    A scanner's follow-up requests can therefore land on a different node than
    the one that created it; the continuation path is replayed as-is.
    Every outcome is reported back explicitly, so overlapping calls sharing one
    balancer never quarantine each other's endpoints.
    """

    def __init__(self, balancer: LoadBalancer, codec: Codec | None = None) -> None:
        if balancer is None:
            raise ValueError("balancer is required for load-balanced mode")
        super().__init__(codec)
        self._balancer = balancer

    @property
    def balancer(self) -> LoadBalancer:
        return self._balancer

    def issue(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        options: RequestOptions | None = None,
        query: dict[str, Any] | None = None,
    ) -> Response:
        options = options or RequestOptions(alternative_endpoint="")
        options.validate()
        endpoint = self._balancer.next_endpoint(infer_failure=False)
        url = join_path(endpoint, options.alternative_endpoint, path)
        try:
            response = self._send(method, url, body, options, query)
        except TransportFailure:
            self._balancer.record_failure(endpoint)
            raise
        self._balancer.record_success(endpoint)
        response.endpoint = endpoint
        return response
