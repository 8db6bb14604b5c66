"""
Gateway paths, endpoint directory defaults and request option defaults.
"""

from __future__ import annotations

# Path prefixes on the cluster gateway. The "0" variant pins requests to the
# first REST server behind the gateway so scanner state stays on one node.
REST_ENDPOINT_BASE = "hbaserest/"
REST_ENDPOINT_BASE_ZERO = "hbaserest0/"

# Endpoint directory (direct worker-node access)
WORKER_HOST_NAME_PREFIX = "workernode"
WORKER_REST_ENDPOINT_PORT = 8090
QUARANTINE_INTERVAL_SEC = 15 * 60.0

# Request options
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RECEIVE_BUFFER_SIZE = 1024 * 1024
DEFAULT_GATEWAY_PORT = 443

# Retry defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SEC = 1.0
DEFAULT_MAX_RETRY_DELAY_SEC = 60.0

# Multi-row puts go to a placeholder row; the real keys travel in the body.
FALSE_ROW_KEY = "false-row-key"

USER_AGENT = "hbase-rest-python/0.1"
