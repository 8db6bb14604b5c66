"""
Body codecs for the REST gateway.

JsonCodec speaks the gateway's JSON representation, where row keys, column
names and cell values are base64 encoded. Other codecs (e.g. protobuf) plug
in through the Codec interface; requesters take content headers from it.
"""

from __future__ import annotations

import base64
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

from hbase_rest.models import (
    Cell,
    CellSet,
    ColumnSchema,
    LiveNode,
    Region,
    RegionLoad,
    Row,
    Scanner,
    StorageClusterStatus,
    TableInfo,
    TableList,
    TableSchema,
    Version,
)

T = TypeVar("T")


class Codec(ABC):
    """Interface for encoding request records and decoding response bodies."""

    content_type: str

    @abstractmethod
    def encode(self, record: Any) -> bytes:
        """Serialize a record to a request body."""
        ...

    @abstractmethod
    def decode(self, body: bytes, record_type: type[T]) -> T:
        """Deserialize a response body into record_type."""
        ...


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


def _unb64(value: str | None) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value)


def _opt_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _opt_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _encode_cell_set(cells: CellSet) -> dict[str, Any]:
    rows = []
    for row in cells.rows:
        out_cells = []
        for cell in row.cells:
            c: dict[str, Any] = {"column": _b64(cell.column), "$": _b64(cell.value)}
            if cell.timestamp is not None:
                c["timestamp"] = cell.timestamp
            out_cells.append(c)
        rows.append({"key": _b64(row.key), "Cell": out_cells})
    return {"Row": rows}


def _decode_cell_set(data: dict[str, Any]) -> CellSet:
    rows = []
    for r in data.get("Row") or []:
        cells = [
            Cell(
                column=_unb64(c.get("column")),
                value=_unb64(c.get("$")),
                timestamp=_opt_int(c.get("timestamp")),
            )
            for c in r.get("Cell") or []
        ]
        rows.append(Row(key=_unb64(r.get("key")), cells=cells))
    return CellSet(rows=rows)


_COLUMN_KEYS = {"name", "VERSIONS", "TTL", "COMPRESSION"}
_TABLE_KEYS = {"name", "ColumnSchema", "IN_MEMORY", "READONLY"}


def _encode_table_schema(schema: TableSchema) -> dict[str, Any]:
    out: dict[str, Any] = dict(schema.attributes)
    out["name"] = schema.name
    if schema.in_memory is not None:
        out["IN_MEMORY"] = str(schema.in_memory).lower()
    if schema.read_only is not None:
        out["READONLY"] = str(schema.read_only).lower()
    columns = []
    for col in schema.columns:
        c: dict[str, Any] = dict(col.attributes)
        c["name"] = col.name
        if col.max_versions is not None:
            c["VERSIONS"] = str(col.max_versions)
        if col.ttl is not None:
            c["TTL"] = str(col.ttl)
        if col.compression is not None:
            c["COMPRESSION"] = col.compression
        columns.append(c)
    out["ColumnSchema"] = columns
    return out


def _decode_table_schema(data: dict[str, Any]) -> TableSchema:
    columns = [
        ColumnSchema(
            name=c.get("name", ""),
            max_versions=_opt_int(c.get("VERSIONS")),
            ttl=_opt_int(c.get("TTL")),
            compression=c.get("COMPRESSION"),
            attributes={k: str(v) for k, v in c.items() if k not in _COLUMN_KEYS},
        )
        for c in data.get("ColumnSchema") or []
    ]
    return TableSchema(
        name=data.get("name", ""),
        columns=columns,
        in_memory=_opt_bool(data.get("IN_MEMORY")),
        read_only=_opt_bool(data.get("READONLY")),
        attributes={k: str(v) for k, v in data.items() if k not in _TABLE_KEYS},
    )


def _encode_scanner(scanner: Scanner) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if scanner.batch is not None:
        out["batch"] = scanner.batch
    if scanner.start_row is not None:
        out["startRow"] = _b64(scanner.start_row)
    if scanner.end_row is not None:
        out["endRow"] = _b64(scanner.end_row)
    if scanner.columns:
        out["column"] = [_b64(c) for c in scanner.columns]
    if scanner.start_time is not None:
        out["startTime"] = scanner.start_time
    if scanner.end_time is not None:
        out["endTime"] = scanner.end_time
    if scanner.max_versions is not None:
        out["maxVersions"] = scanner.max_versions
    if scanner.filter is not None:
        out["filter"] = scanner.filter
    if scanner.caching is not None:
        out["caching"] = scanner.caching
    if scanner.cache_blocks is not None:
        out["cacheBlocks"] = scanner.cache_blocks
    return out


def _decode_scanner(data: dict[str, Any]) -> Scanner:
    return Scanner(
        batch=_opt_int(data.get("batch")),
        start_row=_unb64(data["startRow"]) if "startRow" in data else None,
        end_row=_unb64(data["endRow"]) if "endRow" in data else None,
        columns=tuple(_unb64(c) for c in data.get("column") or []),
        start_time=_opt_int(data.get("startTime")),
        end_time=_opt_int(data.get("endTime")),
        max_versions=_opt_int(data.get("maxVersions")),
        filter=data.get("filter"),
        caching=_opt_int(data.get("caching")),
        cache_blocks=_opt_bool(data.get("cacheBlocks")),
    )


def _encode_table_list(tables: TableList) -> dict[str, Any]:
    return {"table": [{"name": name} for name in tables.names]}


def _decode_table_list(data: dict[str, Any]) -> TableList:
    return TableList(names=[t.get("name", "") for t in data.get("table") or []])


def _decode_table_info(data: dict[str, Any]) -> TableInfo:
    regions = [
        Region(
            name=r.get("name", ""),
            id=_opt_int(r.get("id")),
            start_key=_unb64(r.get("startKey")),
            end_key=_unb64(r.get("endKey")),
            location=r.get("location"),
        )
        for r in data.get("Region") or []
    ]
    return TableInfo(name=data.get("name", ""), regions=regions)


def _decode_version(data: dict[str, Any]) -> Version:
    return Version(
        rest_version=data.get("REST"),
        jvm_version=data.get("JVM"),
        os_version=data.get("OS"),
        server_version=data.get("Server"),
        jersey_version=data.get("Jersey"),
    )


def _decode_cluster_status(data: dict[str, Any]) -> StorageClusterStatus:
    live_nodes = []
    for n in data.get("LiveNodes") or []:
        regions = [
            RegionLoad(
                name=_unb64(r.get("name")),
                stores=_opt_int(r.get("stores")),
                storefiles=_opt_int(r.get("storefiles")),
                storefile_size_mb=_opt_int(r.get("storefileSizeMB")),
                memstore_size_mb=_opt_int(r.get("memstoreSizeMB")),
                storefile_index_size_mb=_opt_int(r.get("storefileIndexSizeMB")),
            )
            for r in n.get("Region") or []
        ]
        live_nodes.append(
            LiveNode(
                name=n.get("name", ""),
                start_code=_opt_int(n.get("startCode")),
                requests=_opt_int(n.get("requests")),
                heap_size_mb=_opt_int(n.get("heapSizeMB")),
                max_heap_size_mb=_opt_int(n.get("maxHeapSizeMB")),
                regions=regions,
            )
        )
    return StorageClusterStatus(
        regions=int(data.get("regions") or 0),
        requests=int(data.get("requests") or 0),
        average_load=float(data.get("averageLoad") or 0.0),
        live_nodes=live_nodes,
        dead_nodes=list(data.get("DeadNodes") or []),
    )


class JsonCodec(Codec):
    """The gateway's JSON representation."""

    content_type = "application/json"

    _encoders: dict[type, Callable[[Any], dict[str, Any]]] = {
        CellSet: _encode_cell_set,
        TableSchema: _encode_table_schema,
        Scanner: _encode_scanner,
        TableList: _encode_table_list,
    }
    _decoders: dict[type, Callable[[dict[str, Any]], Any]] = {
        CellSet: _decode_cell_set,
        TableSchema: _decode_table_schema,
        Scanner: _decode_scanner,
        TableList: _decode_table_list,
        TableInfo: _decode_table_info,
        Version: _decode_version,
        StorageClusterStatus: _decode_cluster_status,
    }

    def encode(self, record: Any) -> bytes:
        encoder = self._encoders.get(type(record))
        if encoder is None:
            raise TypeError(f"Cannot encode {type(record).__name__}")
        return json.dumps(encoder(record), separators=(",", ":")).encode("utf-8")

    def decode(self, body: bytes, record_type: type[T]) -> T:
        decoder = self._decoders.get(record_type)
        if decoder is None:
            raise TypeError(f"Cannot decode {record_type.__name__}")
        data = json.loads(body.decode("utf-8")) if body else {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Expected a JSON object for {record_type.__name__}, "
                f"got {type(data).__name__}"
            )
        try:
            return decoder(data)
        except (AttributeError, TypeError) as e:
            # Valid JSON in the wrong shape, e.g. a string where an object belongs
            raise ValueError(f"Malformed {record_type.__name__} body: {e}") from e
