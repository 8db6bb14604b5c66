"""Shared fixtures: an in-memory REST gateway standing in for the network."""

from __future__ import annotations

import uuid
from typing import Any
from urllib.parse import unquote

import pytest

from hbase_rest.client import HBaseClient
from hbase_rest.constants import FALSE_ROW_KEY
from hbase_rest.errors import TransportFailure
from hbase_rest.models import Cell, CellSet, Row, Scanner, TableList, TableSchema
from hbase_rest.options import RequestOptions
from hbase_rest.requester import Response, WebRequester
from hbase_rest.retry import RetryPolicy


VERSION_BODY = b'{"REST":"0.0.3","JVM":"Oracle 1.8","Server":"jetty/9"}'


class InMemoryGateway(WebRequester):
    """
    Minimal REST gateway: tables, rows, scanners. Scanner batches count rows.
    Queue failures with fail_with(); each queued item is consumed by one request.
    """

    def __init__(self) -> None:
        super().__init__()
        self.schemas: dict[str, TableSchema] = {}
        self.rows: dict[str, dict[bytes, list[Cell]]] = {}
        self.scanners: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.options_seen: list[RequestOptions | None] = []
        self.omit_location = False
        self._failures: list[Any] = []

    def fail_with(self, *failures: Any) -> None:
        """Queue failures: an int status code or an exception instance."""
        self._failures.extend(failures)

    def issue(self, method, path, body=None, options=None, query=None) -> Response:
        self.calls.append((method, path))
        self.options_seen.append(options)
        if self._failures:
            failure = self._failures.pop(0)
            if isinstance(failure, BaseException):
                raise failure
            return Response(status_code=failure, content=b"injected failure")

        parts = [unquote(p) for p in path.split("/")] if path else []
        if not parts:
            return self._ok(TableList(names=sorted(self.schemas)))
        if parts == ["version"]:
            return Response(200, VERSION_BODY)
        table = parts[0]
        if len(parts) == 2 and parts[1] == "schema":
            return self._schema(method, table, body)
        if table not in self.schemas:
            return Response(404, b"Not found")
        if len(parts) == 2 and parts[1] == "scanner" and method == "POST":
            return self._create_scanner(table, body)
        if len(parts) == 3 and parts[1] == "scanner":
            return self._scanner(method, parts[2])
        if len(parts) == 2 and parts[1] == FALSE_ROW_KEY and method == "PUT":
            cells = self.codec.decode(body, CellSet)
            for row in cells.rows:
                self.rows[table].setdefault(row.key, []).extend(row.cells)
            return Response(200)
        if len(parts) >= 2:
            key = parts[1].encode("utf-8")
            if method == "GET":
                if key not in self.rows[table]:
                    return Response(404, b"Not found")
                return self._ok(CellSet([Row(key, list(self.rows[table][key]))]))
            if method == "DELETE":
                self.rows[table].pop(key, None)
                return Response(200)
        return Response(400, b"Bad request")

    def _schema(self, method: str, table: str, body: bytes | None) -> Response:
        if method == "PUT":
            if table in self.schemas:
                return Response(200)
            self.schemas[table] = self.codec.decode(body, TableSchema)
            self.rows[table] = {}
            return Response(201)
        if table not in self.schemas:
            return Response(404, b"Not found")
        if method == "GET":
            return self._ok(self.schemas[table])
        if method == "POST":
            self.schemas[table] = self.codec.decode(body, TableSchema)
            return Response(200)
        if method == "DELETE":
            del self.schemas[table]
            del self.rows[table]
            return Response(200)
        return Response(405)

    def _create_scanner(self, table: str, body: bytes | None) -> Response:
        settings = self.codec.decode(body, Scanner)
        keys = sorted(
            k
            for k in self.rows[table]
            if (settings.start_row is None or k >= settings.start_row)
            and (settings.end_row is None or k < settings.end_row)
        )
        scanner_id = uuid.uuid4().hex
        self.scanners[scanner_id] = {
            "table": table,
            "keys": keys,
            "batch": settings.batch or 100,
        }
        if self.omit_location:
            return Response(201)
        location = f"http://fakegateway:8090/{table}/scanner/{scanner_id}"
        return Response(201, headers={"Location": location})

    def _scanner(self, method: str, scanner_id: str) -> Response:
        state = self.scanners.get(scanner_id)
        if method == "DELETE":
            if state is None:
                return Response(404, b"Not found")
            del self.scanners[scanner_id]
            return Response(200)
        if state is None:
            return Response(404, b"Not found")
        batch_keys = state["keys"][: state["batch"]]
        state["keys"] = state["keys"][state["batch"] :]
        if not batch_keys:
            return Response(204)
        rows = [Row(k, list(self.rows[state["table"]][k])) for k in batch_keys]
        return self._ok(CellSet(rows))

    def _ok(self, record: Any) -> Response:
        return Response(200, self.codec.encode(record))

    def count(self, method: str, suffix: str = "") -> int:
        return sum(1 for m, p in self.calls if m == method and p.endswith(suffix))


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def client(gateway: InMemoryGateway) -> HBaseClient:
    options = RequestOptions(
        retry_policy=RetryPolicy.fixed(3, 0.0), alternative_endpoint=""
    )
    return HBaseClient(options=options, requester=gateway)


@pytest.fixture
def numbers_table(client: HBaseClient) -> str:
    """Table "numbers" with rows 000..099, one cell each."""
    client.create_table(TableSchema(name="numbers"))
    rows = [
        Row(f"{i:03d}", [Cell("d:value", str(i))]) for i in range(100)
    ]
    client.store_cells("numbers", CellSet(rows))
    return "numbers"


@pytest.fixture
def transport_failure() -> TransportFailure:
    return TransportFailure("connection refused", url="http://workernode0:8090/")
