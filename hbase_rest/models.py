"""
Record types exchanged with the REST gateway: schemas, cells, rows, scanner
settings and cluster status. Keys, columns and values are bytes; str input is
accepted and encoded as UTF-8.
"""

from __future__ import annotations

from dataclasses import dataclass, field


def to_bytes(value: bytes | str | None) -> bytes | None:
    """Encode str as UTF-8; pass bytes and None through."""
    if value is None or isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(f"expected bytes or str, got {type(value).__name__}")


@dataclass
class Cell:
    """One cell: column is "family:qualifier"."""

    column: bytes
    value: bytes
    timestamp: int | None = None

    def __post_init__(self) -> None:
        self.column = to_bytes(self.column)
        self.value = to_bytes(self.value)

    @property
    def family(self) -> bytes:
        return self.column.split(b":", 1)[0]

    @property
    def qualifier(self) -> bytes:
        parts = self.column.split(b":", 1)
        return parts[1] if len(parts) > 1 else b""


@dataclass
class Row:
    key: bytes
    cells: list[Cell] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.key = to_bytes(self.key)

    def get(self, column: bytes | str) -> bytes | None:
        """Value of the first cell in column, or None."""
        column = to_bytes(column)
        for cell in self.cells:
            if cell.column == column:
                return cell.value
        return None


@dataclass
class CellSet:
    rows: list[Row] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)


@dataclass
class ColumnSchema:
    name: str
    max_versions: int | None = None
    ttl: int | None = None
    compression: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class TableSchema:
    name: str
    columns: list[ColumnSchema] = field(default_factory=list)
    in_memory: bool | None = None
    read_only: bool | None = None
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class TableList:
    names: list[str] = field(default_factory=list)


@dataclass
class Region:
    name: str
    id: int | None = None
    start_key: bytes = b""
    end_key: bytes = b""
    location: str | None = None


@dataclass
class TableInfo:
    name: str
    regions: list[Region] = field(default_factory=list)


@dataclass
class Version:
    rest_version: str | None = None
    jvm_version: str | None = None
    os_version: str | None = None
    server_version: str | None = None
    jersey_version: str | None = None


@dataclass
class RegionLoad:
    name: bytes
    stores: int | None = None
    storefiles: int | None = None
    storefile_size_mb: int | None = None
    memstore_size_mb: int | None = None
    storefile_index_size_mb: int | None = None


@dataclass
class LiveNode:
    name: str
    start_code: int | None = None
    requests: int | None = None
    heap_size_mb: int | None = None
    max_heap_size_mb: int | None = None
    regions: list[RegionLoad] = field(default_factory=list)


@dataclass
class StorageClusterStatus:
    regions: int = 0
    requests: int = 0
    average_load: float = 0.0
    live_nodes: list[LiveNode] = field(default_factory=list)
    dead_nodes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Scanner:
    """
    Scanner creation settings. Frozen: a scan session keeps the settings it
    was created with for its whole lifetime.

    filter is an already-encoded filter expression string; end_row is exclusive.
    """

    batch: int | None = None
    start_row: bytes | None = None
    end_row: bytes | None = None
    columns: tuple[bytes, ...] = ()
    start_time: int | None = None
    end_time: int | None = None
    max_versions: int | None = None
    filter: str | None = None
    caching: int | None = None
    cache_blocks: bool | None = None

    def __post_init__(self) -> None:
        if self.batch is not None and self.batch <= 0:
            raise ValueError("batch must be positive")
        object.__setattr__(self, "start_row", to_bytes(self.start_row))
        object.__setattr__(self, "end_row", to_bytes(self.end_row))
        object.__setattr__(self, "columns", tuple(to_bytes(c) for c in self.columns))
