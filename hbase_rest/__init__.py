"""
HBase REST client: gateway and load-balanced transports, retry policy, scanners.

Example:
    from hbase_rest import ClusterCredentials, HBaseClient, Scanner

    credentials = ClusterCredentials("https://mycluster.azurehdinsight.net", "admin", secret)
    with HBaseClient(credentials) as client:
        for row in client.scan("events", Scanner(batch=100)):
            print(row.key)
"""

from __future__ import annotations

from hbase_rest.client import HBaseClient
from hbase_rest.codec import Codec, JsonCodec
from hbase_rest.credentials import ClusterCredentials
from hbase_rest.errors import (
    ClientError,
    HBaseRestError,
    ProtocolViolation,
    ServerFailure,
    TransportFailure,
    is_retryable,
)
from hbase_rest.load_balancer import LoadBalancer, generate_endpoints
from hbase_rest.models import (
    Cell,
    CellSet,
    ColumnSchema,
    Row,
    Scanner,
    StorageClusterStatus,
    TableInfo,
    TableList,
    TableSchema,
    Version,
)
from hbase_rest.options import RequestOptions
from hbase_rest.requester import GatewayRequester, LoadBalancedRequester, Response
from hbase_rest.retry import BackoffStrategy, RetryEvent, RetryEventKind, RetryPolicy
from hbase_rest.scanner import ScannerState, ScanSession

__all__ = [
    "BackoffStrategy",
    "Cell",
    "CellSet",
    "ClientError",
    "ClusterCredentials",
    "Codec",
    "ColumnSchema",
    "GatewayRequester",
    "HBaseClient",
    "HBaseRestError",
    "JsonCodec",
    "LoadBalancedRequester",
    "LoadBalancer",
    "ProtocolViolation",
    "RequestOptions",
    "Response",
    "RetryEvent",
    "RetryEventKind",
    "RetryPolicy",
    "Row",
    "ScanSession",
    "Scanner",
    "ScannerState",
    "ServerFailure",
    "StorageClusterStatus",
    "TableInfo",
    "TableList",
    "TableSchema",
    "TransportFailure",
    "Version",
    "generate_endpoints",
    "is_retryable",
]
