"""
Scan sessions: the client-side token for a server-side scanner.

A session is created by HBaseClient.create_scanner, advanced with
scanner_get_next and released with delete_scanner. A session that is never
closed stays open on the server until the server's scanner timeout.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

from hbase_rest.models import Scanner
from hbase_rest.options import RequestOptions

if TYPE_CHECKING:
    from hbase_rest.client import HBaseClient


class ScannerState(Enum):
    """Scan session states."""

    CREATED = "created"  # Server issued a continuation address
    ACTIVE = "active"  # At least one batch returned
    EXHAUSTED = "exhausted"  # Server reported no more rows
    CLOSED = "closed"  # Released by the caller
    ABANDONED = "abandoned"  # Owning client closed first; left to server timeout


class ScanSession:
    """
    Continuation token for one scanner plus its state.
    Not meant to be shared between concurrent callers.
    """

    def __init__(
        self,
        location: str,
        table_name: str,
        settings: Scanner | None = None,
        options: RequestOptions | None = None,
        client: HBaseClient | None = None,
    ) -> None:
        """
        Args:
            location: Continuation URL from the scanner creation response
            table_name: Table the scanner reads
            settings: Scanner settings used at creation
            options: Request options used at creation (reused for fetch and close)
            client: Client that created the session (for context-manager use)
        """
        if not location:
            raise ValueError("location must not be empty")
        if not table_name:
            raise ValueError("table_name must not be empty")
        self._location = location
        self._table_name = table_name
        self._settings = settings or Scanner()
        self._options = options
        self._client = client
        self.state = ScannerState.CREATED

    @property
    def location(self) -> str:
        return self._location

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def settings(self) -> Scanner:
        return self._settings

    @property
    def options(self) -> RequestOptions | None:
        return self._options

    @property
    def scanner_id(self) -> str:
        """Last path segment of the continuation URL."""
        path = urlsplit(self._location).path.rstrip("/")
        return unquote(path.rsplit("/", 1)[-1])

    @property
    def path(self) -> str:
        """Continuation path relative to the endpoint prefix."""
        return f"{self._table_name}/scanner/{self.scanner_id}"

    @property
    def is_open(self) -> bool:
        return self.state in (
            ScannerState.CREATED,
            ScannerState.ACTIVE,
            ScannerState.EXHAUSTED,
        )

    def mark_batch(self) -> None:
        if self.state == ScannerState.CREATED:
            self.state = ScannerState.ACTIVE

    def mark_exhausted(self) -> None:
        if self.state in (ScannerState.CREATED, ScannerState.ACTIVE):
            self.state = ScannerState.EXHAUSTED

    def mark_closed(self) -> None:
        self.state = ScannerState.CLOSED

    def mark_abandoned(self) -> None:
        if self.is_open:
            self.state = ScannerState.ABANDONED

    def __enter__(self) -> ScanSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None and self.is_open:
            self._client.delete_scanner(self)

    def __repr__(self) -> str:
        return (
            f"ScanSession(table={self._table_name!r}, "
            f"scanner_id={self.scanner_id!r}, state={self.state.value})"
        )
