"""
Client configuration helpers.

Configuration is a plain dict (typically loaded from YAML) with an "hbase"
section; environment variables override file values. get_client_config()
normalizes it, build_request_options() and create_client() turn it into objects.

Example config.yaml:

    hbase:
      cluster_url: https://mycluster.azurehdinsight.net
      username: admin
      password_env: HBASE_REST_PASSWORD
      timeout_ms: 30000
      retry:
        strategy: exponential
        max_retries: 3
        initial_delay_sec: 1.0
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable

import yaml

from hbase_rest.client import HBaseClient
from hbase_rest.constants import (
    DEFAULT_GATEWAY_PORT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY_SEC,
    DEFAULT_RECEIVE_BUFFER_SIZE,
    DEFAULT_RETRY_DELAY_SEC,
    DEFAULT_TIMEOUT_MS,
    QUARANTINE_INTERVAL_SEC,
    REST_ENDPOINT_BASE,
    WORKER_HOST_NAME_PREFIX,
    WORKER_REST_ENDPOINT_PORT,
)
from hbase_rest.credentials import ClusterCredentials
from hbase_rest.load_balancer import LoadBalancer, generate_endpoints, normalize_endpoints
from hbase_rest.options import RequestOptions
from hbase_rest.retry import BackoffStrategy, RetryPolicy

logger = logging.getLogger(__name__)

SECTION = "hbase"

DEFAULTS: dict[str, Any] = {
    "cluster_url": None,
    "username": None,
    "password": None,
    "password_env": "HBASE_REST_PASSWORD",
    "endpoints": [],
    "num_nodes": 0,
    "host_prefix": WORKER_HOST_NAME_PREFIX,
    "worker_port": WORKER_REST_ENDPOINT_PORT,
    "quarantine_interval_sec": QUARANTINE_INTERVAL_SEC,
    "alternative_endpoint": None,
    "timeout_ms": DEFAULT_TIMEOUT_MS,
    "receive_buffer_size": DEFAULT_RECEIVE_BUFFER_SIZE,
    "keep_alive": True,
    "port": DEFAULT_GATEWAY_PORT,
    "retry": {},
}

RETRY_DEFAULTS: dict[str, Any] = {
    "strategy": BackoffStrategy.EXPONENTIAL.value,
    "max_retries": DEFAULT_MAX_RETRIES,
    "initial_delay_sec": DEFAULT_RETRY_DELAY_SEC,
    "max_delay_sec": DEFAULT_MAX_RETRY_DELAY_SEC,
    "backoff_multiplier": 2.0,
    "max_elapsed_sec": None,
}

# env var -> (config key, parser)
ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "HBASE_REST_URL": ("cluster_url", str),
    "HBASE_REST_USERNAME": ("username", str),
    "HBASE_REST_ENDPOINTS": (
        "endpoints",
        lambda v: [e.strip() for e in v.split(",") if e.strip()],
    ),
    "HBASE_REST_TIMEOUT_MS": ("timeout_ms", int),
}


def load_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML config file. Returns {} if the file is missing or empty."""
    path = Path(path)
    if not path.is_file():
        logger.debug("Config file %s not found", path)
        return {}
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def get_section(
    raw_config: dict,
    section: str,
    defaults: dict[str, Any],
    validators: dict[str, Callable[[Any], Any]] | None = None,
) -> dict[str, Any]:
    """
    Merge a config section over defaults and apply validators.
    Unknown keys are dropped; a value the validator rejects falls back to the default.
    """
    validators = validators or {}
    out = dict(defaults)
    for k, v in dict(raw_config.get(section) or {}).items():
        if k in defaults:
            out[k] = v
    for k, validator in validators.items():
        if k in out and out[k] is not None:
            try:
                out[k] = validator(out[k])
            except (TypeError, ValueError):
                logger.warning(
                    "Invalid %s.%s=%r, using default %r", section, k, out[k], defaults[k]
                )
                out[k] = defaults[k]
    return out


def _clamp(low: float, high: float | None = None, cast: Callable = int) -> Callable:
    def validate(value: Any) -> Any:
        v = cast(value)
        v = max(cast(low), v)
        if high is not None:
            v = min(cast(high), v)
        return v

    return validate


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def get_client_config(
    raw_config: dict[str, Any], environ: dict[str, str] | None = None
) -> dict[str, Any]:
    """
    Return normalized client config from the full raw config.

    Args:
        raw_config: Full config dict (e.g. from load_config())
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Config dict with every key of DEFAULTS and a normalized "retry" dict
    """
    environ = os.environ if environ is None else environ
    cfg = get_section(
        raw_config,
        SECTION,
        DEFAULTS,
        validators={
            "num_nodes": _clamp(0),
            "worker_port": _clamp(1, 65535),
            "port": _clamp(0, 65535),
            "timeout_ms": _clamp(0),
            "receive_buffer_size": _clamp(0),
            "quarantine_interval_sec": _clamp(0.0, cast=float),
            "keep_alive": _as_bool,
        },
    )

    for env_name, (key, parse) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or not value.strip():
            continue
        try:
            cfg[key] = parse(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s=%r", env_name, value)

    # Variable named by password_env; wins over the file like ENV_OVERRIDES
    if cfg["password_env"]:
        env_password = environ.get(cfg["password_env"])
        if env_password:
            cfg["password"] = env_password

    cfg["endpoints"] = list(cfg["endpoints"] or [])
    cfg["retry"] = get_section(
        {"retry": cfg["retry"]},
        "retry",
        RETRY_DEFAULTS,
        validators={
            "max_retries": _clamp(0, 100),
            "initial_delay_sec": _clamp(0.0, cast=float),
            "max_delay_sec": _clamp(0.0, cast=float),
            "backoff_multiplier": _clamp(1.0, cast=float),
            "max_elapsed_sec": _clamp(0.0, cast=float),
            "strategy": lambda v: BackoffStrategy(str(v).lower()).value,
        },
    )
    return cfg


def build_retry_policy(retry_cfg: dict[str, Any]) -> RetryPolicy:
    """Retry policy from a normalized "retry" dict."""
    return RetryPolicy(
        max_retries=retry_cfg["max_retries"],
        initial_delay_sec=retry_cfg["initial_delay_sec"],
        max_delay_sec=retry_cfg["max_delay_sec"],
        backoff_multiplier=retry_cfg["backoff_multiplier"],
        strategy=BackoffStrategy(retry_cfg["strategy"]),
        max_elapsed_sec=retry_cfg["max_elapsed_sec"],
    )


def is_gateway_mode(cfg: dict[str, Any]) -> bool:
    return bool(cfg.get("cluster_url"))


def build_request_options(cfg: dict[str, Any]) -> RequestOptions:
    """Request options from normalized config."""
    alternative_endpoint = cfg.get("alternative_endpoint")
    if alternative_endpoint is None:
        alternative_endpoint = REST_ENDPOINT_BASE if is_gateway_mode(cfg) else ""
    return RequestOptions(
        retry_policy=build_retry_policy(cfg["retry"]),
        alternative_endpoint=str(alternative_endpoint),
        keep_alive=cfg["keep_alive"],
        timeout_ms=cfg["timeout_ms"],
        receive_buffer_size=cfg["receive_buffer_size"],
        port=cfg["port"],
    )


def build_load_balancer(cfg: dict[str, Any]) -> LoadBalancer:
    """Load balancer over configured endpoints, or generated worker-node names."""
    if cfg["endpoints"]:
        endpoints = normalize_endpoints(cfg["endpoints"], port=cfg["worker_port"])
    else:
        endpoints = generate_endpoints(
            cfg["num_nodes"], host_prefix=cfg["host_prefix"], port=cfg["worker_port"]
        )
    if not endpoints:
        raise ValueError(
            "hbase config needs cluster_url, endpoints or num_nodes > 0"
        )
    return LoadBalancer(
        endpoints, quarantine_interval_sec=cfg["quarantine_interval_sec"]
    )


def create_client(
    raw_config: dict[str, Any], environ: dict[str, str] | None = None
) -> HBaseClient:
    """
    Build an HBaseClient from raw config.
    Gateway mode when cluster_url is set, load-balanced mode otherwise.
    """
    cfg = get_client_config(raw_config, environ)
    options = build_request_options(cfg)
    if is_gateway_mode(cfg):
        if not cfg["username"] or not cfg["password"]:
            raise ValueError("Gateway mode needs username and password")
        credentials = ClusterCredentials(cfg["cluster_url"], cfg["username"], cfg["password"])
        logger.info("HBase client in gateway mode -> %s", credentials.cluster_url)
        return HBaseClient(credentials=credentials, options=options)

    balancer = build_load_balancer(cfg)
    logger.info(
        "HBase client in load-balanced mode over %d endpoints", balancer.endpoint_count
    )
    return HBaseClient(options=options, balancer=balancer)
