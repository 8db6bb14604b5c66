"""
Round-robin load balancing over REST server endpoints with failure quarantine.

The endpoint directory is fixed at construction and partitioned into
available and quarantined endpoints. A quarantined endpoint comes back after
the quarantine interval; the expiry is checked lazily on every access.

When every endpoint is quarantined, all of them are reinstated at once
instead of failing the selection. This favours availability over strict
quarantine and can mask nodes that are genuinely unreachable; the retry
policy's attempt cap is what bounds the damage in that case.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterable
from urllib.parse import urlparse

from hbase_rest.constants import (
    QUARANTINE_INTERVAL_SEC,
    WORKER_HOST_NAME_PREFIX,
    WORKER_REST_ENDPOINT_PORT,
)

logger = logging.getLogger(__name__)


def generate_endpoints(
    num_nodes: int,
    host_prefix: str = WORKER_HOST_NAME_PREFIX,
    port: int = WORKER_REST_ENDPOINT_PORT,
    scheme: str = "http",
) -> list[str]:
    """Endpoint URLs for num_nodes hosts named {host_prefix}0 .. {host_prefix}N-1."""
    return [f"{scheme}://{host_prefix}{i}:{port}/" for i in range(max(0, num_nodes))]


def normalize_endpoints(
    hosts: Iterable[str],
    port: int = WORKER_REST_ENDPOINT_PORT,
    scheme: str = "http",
) -> list[str]:
    """
    Normalize host names or URLs into endpoint URLs ending in "/".
    Bare host names get scheme and port; full URLs are kept as given.
    Duplicates are dropped, first occurrence wins.
    """
    out: list[str] = []
    for host in hosts:
        host = str(host).strip()
        if not host:
            continue
        if "://" in host:
            url = host.rstrip("/") + "/"
        else:
            url = f"{scheme}://{host}:{port}/"
        if url not in out:
            out.append(url)
    return out


@dataclass(frozen=True)
class BalancerSnapshot:
    """Point-in-time copy of the balancer partition."""

    all: tuple[str, ...]
    available: tuple[str, ...]
    quarantined: tuple[str, ...]
    active: str | None


class LoadBalancer:
    """
    Load balancer handing out endpoints round-robin among healthy endpoints.
    Thread-safe: one lock covers every read and mutation of the partition.
    """

    def __init__(
        self,
        endpoints: Iterable[str],
        quarantine_interval_sec: float = QUARANTINE_INTERVAL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            endpoints: Endpoint URLs (the fixed directory)
            quarantine_interval_sec: How long a failed endpoint is excluded from selection
            clock: Monotonic time source (injectable for tests)
        """
        unique: list[str] = []
        for ep in endpoints:
            if ep not in unique:
                unique.append(ep)
        if not unique:
            raise ValueError("LoadBalancer requires at least one endpoint")

        self._all: tuple[str, ...] = tuple(unique)
        self._position = {ep: i for i, ep in enumerate(self._all)}
        self._quarantine_interval = max(0.0, quarantine_interval_sec)
        self._clock = clock

        self._available: set[str] = set(self._all)
        # endpoint -> expiry, in quarantine order
        self._quarantined: OrderedDict[str, float] = OrderedDict()
        self._active: str | None = None
        self._cursor = -1
        self._lock = Lock()

    @classmethod
    def from_node_count(
        cls,
        num_nodes: int,
        host_prefix: str = WORKER_HOST_NAME_PREFIX,
        port: int = WORKER_REST_ENDPOINT_PORT,
        **kwargs,
    ) -> LoadBalancer:
        """Balancer over generated worker-node endpoints."""
        return cls(generate_endpoints(num_nodes, host_prefix, port), **kwargs)

    @classmethod
    def from_hosts(
        cls,
        hosts: Iterable[str],
        port: int = WORKER_REST_ENDPOINT_PORT,
        **kwargs,
    ) -> LoadBalancer:
        """Balancer over host names or URLs."""
        return cls(normalize_endpoints(hosts, port), **kwargs)

    def next_endpoint(self, infer_failure: bool = True) -> str:
        """
        Select the next endpoint.

        With infer_failure (the default), an endpoint that is still active
        (handed out and not reported back) is taken to have failed when the
        caller asks again, and it is quarantined before selecting. Callers that
        always report through record_success / record_failure pass
        infer_failure=False: nothing is quarantined and the selection is not
        tracked as active, so overlapping callers cannot quarantine each
        other's endpoints. Never raises: an empty pool is refilled from
        quarantine.

        Args:
            infer_failure: Quarantine the active endpoint on reselection

        Returns:
            Selected endpoint URL
        """
        with self._lock:
            self._release_expired()

            if infer_failure and self._active is not None:
                logger.debug(
                    "Endpoint %s reselected without a reported outcome, quarantining",
                    self._active,
                )
                self._quarantine(self._active)

            if not self._available:
                logger.warning(
                    "All %d endpoints quarantined, reinstating them", len(self._all)
                )
                self._available.update(self._quarantined)
                self._quarantined.clear()

            n = len(self._all)
            index = next(
                (self._cursor + step) % n
                for step in range(1, n + 1)
                if self._all[(self._cursor + step) % n] in self._available
            )
            self._cursor = index
            selected = self._all[index]
            if infer_failure:
                self._active = selected
            return selected

    def record_success(self, endpoint: str) -> None:
        """Report that an exchange with endpoint completed."""
        with self._lock:
            self._check_known(endpoint)
            if self._active == endpoint:
                self._active = None

    def record_failure(self, endpoint: str) -> None:
        """Report that endpoint failed; it is quarantined immediately."""
        with self._lock:
            self._check_known(endpoint)
            if self._active == endpoint:
                self._active = None
            if endpoint in self._available:
                self._quarantine(endpoint)
                logger.info(
                    "Endpoint %s quarantined for %.1fs",
                    endpoint,
                    self._quarantine_interval,
                )

    def reset(self) -> None:
        """Make every endpoint available again."""
        with self._lock:
            self._active = None
            self._quarantined.clear()
            self._available = set(self._all)
            self._cursor = -1

    def is_quarantined(self, endpoint: str) -> bool:
        with self._lock:
            self._release_expired()
            return endpoint in self._quarantined

    @property
    def endpoint_count(self) -> int:
        return len(self._all)

    @property
    def available_count(self) -> int:
        with self._lock:
            self._release_expired()
            return len(self._available)

    @property
    def quarantined_count(self) -> int:
        with self._lock:
            self._release_expired()
            return len(self._quarantined)

    @property
    def active_endpoint(self) -> str | None:
        with self._lock:
            return self._active

    def snapshot(self) -> BalancerSnapshot:
        """Return a consistent copy of the partition."""
        with self._lock:
            self._release_expired()
            return BalancerSnapshot(
                all=self._all,
                available=tuple(ep for ep in self._all if ep in self._available),
                quarantined=tuple(self._quarantined),
                active=self._active,
            )

    # Callers below must hold self._lock.

    def _quarantine(self, endpoint: str) -> None:
        self._available.discard(endpoint)
        self._quarantined.pop(endpoint, None)
        self._quarantined[endpoint] = self._clock() + self._quarantine_interval
        if self._active == endpoint:
            self._active = None

    def _release_expired(self) -> None:
        now = self._clock()
        expired = [ep for ep, expiry in self._quarantined.items() if expiry <= now]
        for ep in expired:
            del self._quarantined[ep]
            self._available.add(ep)
            logger.debug("Endpoint %s released from quarantine", ep)

    def _check_known(self, endpoint: str) -> None:
        if endpoint not in self._position:
            raise ValueError(f"Unknown endpoint: {endpoint}")

    def __repr__(self) -> str:
        hosts = ", ".join(urlparse(ep).netloc or ep for ep in self._all)
        return f"LoadBalancer([{hosts}])"
