"""
HBase REST client: table/schema operations, cell reads and writes, and scanners.

Works in two modes:
- gateway mode: every call goes to one cluster gateway with credentials
- load-balanced mode: calls are spread over worker-node REST servers

Each operation runs under the retry policy of its RequestOptions. Errors that
escape carry the operation name and the table / row key / scanner id involved.
"""

from __future__ import annotations

import logging
import weakref
from threading import Lock
from typing import Callable, Iterable, Iterator, TypeVar
from urllib.parse import quote

from hbase_rest.codec import Codec
from hbase_rest.constants import (
    FALSE_ROW_KEY,
    REST_ENDPOINT_BASE,
    REST_ENDPOINT_BASE_ZERO,
    WORKER_HOST_NAME_PREFIX,
    WORKER_REST_ENDPOINT_PORT,
)
from hbase_rest.credentials import ClusterCredentials
from hbase_rest.errors import HBaseRestError, ProtocolViolation, status_error
from hbase_rest.load_balancer import LoadBalancer
from hbase_rest.models import (
    CellSet,
    Row,
    Scanner,
    StorageClusterStatus,
    TableInfo,
    TableList,
    TableSchema,
    Version,
    to_bytes,
)
from hbase_rest.options import RequestOptions
from hbase_rest.requester import (
    GatewayRequester,
    LoadBalancedRequester,
    Response,
    WebRequester,
)
from hbase_rest.scanner import ScannerState, ScanSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Scanner fetch statuses that mean "no more rows"
_EXHAUSTED_STATUSES = (204, 404, 410)
# Scanner delete statuses that mean "released" (or already gone)
_CLOSED_STATUSES = (200, 204, 404, 410)


def _require_name(value: str, name: str) -> None:
    if value is None:
        raise ValueError(f"{name} must not be None")
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")


def _quote(value: bytes | str) -> str:
    return quote(to_bytes(value), safe="")


def _describe_key(key: bytes | str) -> str:
    raw = to_bytes(key)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.hex()


class HBaseClient:
    """
    Client for the HBase REST gateway.
    Thread-safe for independent calls; a ScanSession belongs to one caller.
    """

    def __init__(
        self,
        credentials: ClusterCredentials | None = None,
        options: RequestOptions | None = None,
        balancer: LoadBalancer | None = None,
        codec: Codec | None = None,
        requester: WebRequester | None = None,
    ) -> None:
        """
        Args:
            credentials: Gateway credentials (gateway mode)
            options: Default request options for every call
            balancer: Load balancer over worker nodes (load-balanced mode)
            codec: Body codec (default JsonCodec)
            requester: Pre-built requester; overrides credentials/balancer
        """
        if requester is not None:
            self._requester = requester
            gateway_mode = isinstance(requester, GatewayRequester)
        elif credentials is not None:
            self._requester = GatewayRequester(credentials, codec)
            gateway_mode = True
        elif balancer is not None:
            self._requester = LoadBalancedRequester(balancer, codec)
            gateway_mode = False
        else:
            raise ValueError("Either credentials or a load balancer is required")

        if options is None:
            options = RequestOptions() if gateway_mode else RequestOptions(
                alternative_endpoint=""
            )
        options.validate()
        self._options = options

        # Behind the gateway, scanners must stick to one REST server
        if gateway_mode and options.alternative_endpoint == REST_ENDPOINT_BASE:
            self._scanner_options = options.with_endpoint(REST_ENDPOINT_BASE_ZERO)
        else:
            self._scanner_options = options

        self._sessions: weakref.WeakSet[ScanSession] = weakref.WeakSet()
        self._sessions_lock = Lock()

    @classmethod
    def for_node_count(
        cls,
        num_nodes: int,
        options: RequestOptions | None = None,
        host_prefix: str = WORKER_HOST_NAME_PREFIX,
        port: int = WORKER_REST_ENDPOINT_PORT,
        **balancer_kwargs,
    ) -> HBaseClient:
        """Load-balanced client over worker nodes {host_prefix}0..N-1."""
        balancer = LoadBalancer.from_node_count(
            num_nodes, host_prefix=host_prefix, port=port, **balancer_kwargs
        )
        return cls(options=options, balancer=balancer)

    @classmethod
    def for_hosts(
        cls,
        hosts: Iterable[str],
        options: RequestOptions | None = None,
        port: int = WORKER_REST_ENDPOINT_PORT,
        **balancer_kwargs,
    ) -> HBaseClient:
        """Load-balanced client over the given worker host names or URLs."""
        balancer = LoadBalancer.from_hosts(hosts, port=port, **balancer_kwargs)
        return cls(options=options, balancer=balancer)

    @property
    def options(self) -> RequestOptions:
        return self._options

    @property
    def requester(self) -> WebRequester:
        return self._requester

    # Cluster

    def get_version(self, options: RequestOptions | None = None) -> Version:
        """Return REST server, JVM and OS version information."""
        return self._call(
            "get_version",
            lambda opts: self._get_and_decode(
                "version", Version, opts, "Couldn't get version"
            ),
            options,
        )

    def get_storage_cluster_status(
        self, options: RequestOptions | None = None
    ) -> StorageClusterStatus:
        return self._call(
            "get_storage_cluster_status",
            lambda opts: self._get_and_decode(
                "status/cluster", StorageClusterStatus, opts, "Couldn't get cluster status"
            ),
            options,
        )

    # Tables

    def list_tables(self, options: RequestOptions | None = None) -> TableList:
        return self._call(
            "list_tables",
            lambda opts: self._get_and_decode("", TableList, opts, "Couldn't list tables"),
            options,
        )

    def create_table(
        self, schema: TableSchema, options: RequestOptions | None = None
    ) -> bool:
        """
        Create a table.

        Returns:
            True if the table was created, False if it already existed
        """
        if schema is None:
            raise ValueError("schema must not be None")
        _require_name(schema.name, "schema.name")

        def work(opts: RequestOptions) -> bool:
            response = self._requester.issue(
                "PUT", f"{_quote(schema.name)}/schema", self._encode(schema), opts
            )
            if response.status_code == 201:
                return True
            if response.status_code == 200:
                return False
            raise status_error(
                response.status_code,
                response.text,
                f"Couldn't create table {schema.name}",
                "either 200 or 201",
            )

        created = self._call("create_table", work, options, table=schema.name)
        logger.info("Table %s %s", schema.name, "created" if created else "already exists")
        return created

    def delete_table(self, table: str, options: RequestOptions | None = None) -> None:
        _require_name(table, "table")

        def work(opts: RequestOptions) -> None:
            response = self._requester.issue("DELETE", f"{_quote(table)}/schema", None, opts)
            self._expect(response, (200,), f"Couldn't delete table {table}")

        self._call("delete_table", work, options, table=table)
        logger.info("Table %s deleted", table)

    def get_table_schema(
        self, table: str, options: RequestOptions | None = None
    ) -> TableSchema:
        _require_name(table, "table")
        return self._call(
            "get_table_schema",
            lambda opts: self._get_and_decode(
                f"{_quote(table)}/schema",
                TableSchema,
                opts,
                f"Couldn't get schema of {table}",
            ),
            options,
            table=table,
        )

    def modify_table_schema(
        self, table: str, schema: TableSchema, options: RequestOptions | None = None
    ) -> None:
        _require_name(table, "table")
        if schema is None:
            raise ValueError("schema must not be None")

        def work(opts: RequestOptions) -> None:
            response = self._requester.issue(
                "POST", f"{_quote(table)}/schema", self._encode(schema), opts
            )
            self._expect(response, (200, 201), f"Couldn't modify table {table}")

        self._call("modify_table_schema", work, options, table=table)

    def get_table_info(self, table: str, options: RequestOptions | None = None) -> TableInfo:
        """Return the table's regions."""
        _require_name(table, "table")
        return self._call(
            "get_table_info",
            lambda opts: self._get_and_decode(
                f"{_quote(table)}/regions",
                TableInfo,
                opts,
                f"Couldn't get regions of {table}",
            ),
            options,
            table=table,
        )

    # Cells

    def get_cells(
        self,
        table: str,
        row_key: bytes | str,
        column: bytes | str | None = None,
        options: RequestOptions | None = None,
    ) -> CellSet | None:
        """
        Read one row (optionally one column of it).

        Returns:
            CellSet with the row, or None if the row does not exist
        """
        _require_name(table, "table")
        if row_key is None:
            raise ValueError("row_key must not be None")
        path = f"{_quote(table)}/{_quote(row_key)}"
        if column is not None:
            path = f"{path}/{_quote(column)}"

        def work(opts: RequestOptions) -> CellSet | None:
            response = self._requester.issue("GET", path, None, opts)
            if response.status_code == 404:
                return None
            self._expect(response, (200,), f"Couldn't get cells from {table}")
            return self._decode(response, CellSet)

        return self._call(
            "get_cells", work, options, table=table, row_key=_describe_key(row_key)
        )

    def store_cells(
        self, table: str, cells: CellSet, options: RequestOptions | None = None
    ) -> None:
        """
        Write every row of cells.
        The write is not idempotent for versioned columns; pass a
        RetryPolicy.no_retry() policy where a repeated write is unsafe.
        """
        _require_name(table, "table")
        if cells is None:
            raise ValueError("cells must not be None")

        def work(opts: RequestOptions) -> None:
            response = self._requester.issue(
                "PUT", f"{_quote(table)}/{FALSE_ROW_KEY}", self._encode(cells), opts
            )
            self._expect(response, (200,), f"Couldn't insert into table {table}")

        self._call("store_cells", work, options, table=table)

    def delete_cells(
        self,
        table: str,
        row_key: bytes | str,
        column: bytes | str | None = None,
        options: RequestOptions | None = None,
    ) -> None:
        """Delete a row, or one column of it."""
        _require_name(table, "table")
        if row_key is None:
            raise ValueError("row_key must not be None")
        path = f"{_quote(table)}/{_quote(row_key)}"
        if column is not None:
            path = f"{path}/{_quote(column)}"

        def work(opts: RequestOptions) -> None:
            response = self._requester.issue("DELETE", path, None, opts)
            self._expect(response, (200,), f"Couldn't delete cells from {table}")

        self._call(
            "delete_cells", work, options, table=table, row_key=_describe_key(row_key)
        )

    # Scanners

    def create_scanner(
        self,
        table: str,
        scanner: Scanner | None = None,
        options: RequestOptions | None = None,
    ) -> ScanSession:
        """
        Create a server-side scanner.

        Args:
            table: Table to scan
            scanner: Batch size, row range, columns, filter (default: whole table)
            options: Request options, kept by the session for fetch and close

        Returns:
            Open ScanSession

        Raises:
            ProtocolViolation: If the response has no Location header
        """
        _require_name(table, "table")
        settings = scanner or Scanner()
        opts = options or self._scanner_options
        body = self._encode(settings)

        def work(o: RequestOptions) -> str:
            response = self._requester.issue("POST", f"{_quote(table)}/scanner", body, o)
            self._expect(response, (201,), f"Couldn't create a scanner for table {table}")
            location = response.header("Location")
            if not location:
                raise ProtocolViolation("Couldn't find header 'Location' in the response!")
            return location

        location = self._call("create_scanner", work, opts, table=table)
        session = ScanSession(location, table, settings, opts, client=self)
        with self._sessions_lock:
            self._sessions.add(session)
        logger.info("Scanner %s created on table %s", session.scanner_id, table)
        return session

    def scanner_get_next(
        self, session: ScanSession, options: RequestOptions | None = None
    ) -> CellSet | None:
        """
        Fetch the next batch.

        Returns:
            Next CellSet, or None once the scanner is exhausted. After None has
            been returned, further calls return None without a request.
            Must not be called after delete_scanner.
        """
        if session is None:
            raise ValueError("session must not be None")
        if session.state == ScannerState.EXHAUSTED:
            return None
        opts = options or session.options or self._scanner_options

        def work(o: RequestOptions) -> CellSet | None:
            response = self._requester.issue("GET", session.path, None, o)
            if response.status_code in _EXHAUSTED_STATUSES:
                return None
            self._expect(
                response, (200,), f"Couldn't get next batch for table {session.table_name}"
            )
            if not response.content:
                return None
            batch = self._decode(response, CellSet)
            return batch if batch.rows else None

        batch = self._call(
            "scanner_get_next",
            work,
            opts,
            table=session.table_name,
            scanner_id=session.scanner_id,
        )
        if batch is None:
            session.mark_exhausted()
            logger.debug("Scanner %s exhausted", session.scanner_id)
        else:
            session.mark_batch()
        return batch

    def delete_scanner(
        self, session: ScanSession, options: RequestOptions | None = None
    ) -> None:
        """Release the scanner. Closing an already closed or expired scanner is a no-op."""
        if session is None:
            raise ValueError("session must not be None")
        if session.state == ScannerState.CLOSED:
            logger.debug("Scanner %s already closed", session.scanner_id)
            return
        opts = options or session.options or self._scanner_options

        def work(o: RequestOptions) -> None:
            response = self._requester.issue("DELETE", session.path, None, o)
            self._expect(
                response,
                _CLOSED_STATUSES,
                f"Couldn't delete scanner on table {session.table_name}",
            )

        self._call(
            "delete_scanner",
            work,
            opts,
            table=session.table_name,
            scanner_id=session.scanner_id,
        )
        session.mark_closed()
        with self._sessions_lock:
            self._sessions.discard(session)
        logger.info("Scanner %s closed", session.scanner_id)

    def scan(
        self,
        table: str,
        scanner: Scanner | None = None,
        options: RequestOptions | None = None,
    ) -> Iterator[Row]:
        """Yield every row of a scan, closing the scanner when done or abandoned."""
        session = self.create_scanner(table, scanner, options)
        try:
            while True:
                batch = self.scanner_get_next(session)
                if batch is None:
                    return
                yield from batch.rows
        finally:
            if session.state != ScannerState.CLOSED:
                try:
                    self.delete_scanner(session)
                except HBaseRestError as e:
                    logger.warning(
                        "Failed to close scanner %s, left to server timeout: %s",
                        session.scanner_id,
                        e,
                    )

    # Helpers

    def _call(
        self,
        operation: str,
        work: Callable[[RequestOptions], T],
        options: RequestOptions | None,
        **targets,
    ) -> T:
        opts = options or self._options
        opts.validate()
        try:
            return opts.retry_policy.execute(lambda: work(opts))
        except HBaseRestError as e:
            e.annotate(operation, **targets)
            logger.debug("%s failed: %s", operation, e)
            raise

    def _get_and_decode(
        self, path: str, record_type: type[T], opts: RequestOptions, description: str
    ) -> T:
        response = self._requester.issue("GET", path, None, opts)
        self._expect(response, (200,), description)
        return self._decode(response, record_type)

    def _encode(self, record) -> bytes:
        return self._requester.codec.encode(record)

    def _decode(self, response: Response, record_type: type[T]) -> T:
        try:
            return self._requester.codec.decode(response.content, record_type)
        except (ValueError, KeyError) as e:
            raise ProtocolViolation(
                f"Couldn't decode {record_type.__name__} from response: {e}"
            ) from e

    @staticmethod
    def _expect(response: Response, accepted: tuple[int, ...], description: str) -> None:
        if response.status_code not in accepted:
            raise status_error(
                response.status_code,
                response.text,
                description,
                " or ".join(str(s) for s in accepted),
            )

    def close(self) -> None:
        """Close the transport. Scanners still open are left to the server timeout."""
        with self._sessions_lock:
            open_sessions = [s for s in self._sessions if s.is_open]
            self._sessions = weakref.WeakSet()
        if open_sessions:
            logger.warning(
                "Closing client with %d open scanner(s); they will expire server-side",
                len(open_sessions),
            )
            for session in open_sessions:
                session.mark_abandoned()
        self._requester.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
