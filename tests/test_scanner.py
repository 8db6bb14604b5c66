"""Tests for hbase_rest.scanner: session identity, state transitions, scan cursor protocol."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from hbase_rest.client import HBaseClient
from hbase_rest.errors import ProtocolViolation
from hbase_rest.models import Scanner
from hbase_rest.options import RequestOptions
from hbase_rest.retry import RetryPolicy
from hbase_rest.scanner import ScannerState, ScanSession


def test_session_identity_from_location() -> None:
    session = ScanSession("http://wn0:8090/events/scanner/14820%3A1", "events")
    assert session.scanner_id == "14820:1"
    assert session.path == "events/scanner/14820:1"
    assert session.state == ScannerState.CREATED
    assert session.is_open
    assert "events" in repr(session)


def test_session_requires_location_and_table() -> None:
    with pytest.raises(ValueError):
        ScanSession("", "events")
    with pytest.raises(ValueError):
        ScanSession("http://wn0/events/scanner/1", "")


def test_session_state_transitions() -> None:
    session = ScanSession("http://wn0/t/scanner/1", "t")
    session.mark_batch()
    assert session.state == ScannerState.ACTIVE
    session.mark_exhausted()
    assert session.state == ScannerState.EXHAUSTED
    assert session.is_open
    session.mark_closed()
    assert session.state == ScannerState.CLOSED
    assert not session.is_open
    session.mark_abandoned()
    assert session.state == ScannerState.CLOSED


def test_session_context_manager_closes_through_client() -> None:
    client = MagicMock()
    session = ScanSession("http://wn0/t/scanner/1", "t", client=client)
    with session as s:
        assert s is session
    client.delete_scanner.assert_called_once_with(session)


def test_full_scan_returns_every_row_once(client: HBaseClient, gateway, numbers_table) -> None:
    session = client.create_scanner(numbers_table, Scanner(batch=10))
    keys: list[bytes] = []
    batches = 0
    while True:
        batch = client.scanner_get_next(session)
        if batch is None:
            break
        batches += 1
        assert len(batch) <= 10
        keys.extend(row.key for row in batch)
    client.delete_scanner(session)

    assert batches == 10
    assert keys == [f"{i:03d}".encode() for i in range(100)]
    assert session.state == ScannerState.CLOSED
    assert gateway.scanners == {}


def test_ranged_scan(client: HBaseClient, numbers_table) -> None:
    rows = list(client.scan(numbers_table, Scanner(batch=4, start_row="015", end_row="028")))
    assert [r.key for r in rows] == [f"{i:03d}".encode() for i in range(15, 28)]
    assert rows[0].get("d:value") == b"15"


def test_empty_range_is_exhausted_on_first_fetch(client: HBaseClient, numbers_table) -> None:
    session = client.create_scanner(numbers_table, Scanner(batch=10, start_row="500"))
    assert client.scanner_get_next(session) is None
    assert session.state == ScannerState.EXHAUSTED
    client.delete_scanner(session)


def test_fetch_after_exhausted_sends_nothing(client: HBaseClient, gateway, numbers_table) -> None:
    session = client.create_scanner(numbers_table, Scanner(batch=100))
    assert client.scanner_get_next(session) is not None
    assert client.scanner_get_next(session) is None
    fetches = gateway.count("GET", session.scanner_id)
    assert client.scanner_get_next(session) is None
    assert gateway.count("GET", session.scanner_id) == fetches


def test_delete_scanner_is_idempotent(client: HBaseClient, gateway, numbers_table) -> None:
    session = client.create_scanner(numbers_table, Scanner(batch=10))
    client.delete_scanner(session)
    client.delete_scanner(session)
    assert gateway.count("DELETE", session.scanner_id) == 1


def test_delete_expired_scanner_succeeds(client: HBaseClient, gateway, numbers_table) -> None:
    session = client.create_scanner(numbers_table, Scanner(batch=10))
    gateway.scanners.clear()
    client.delete_scanner(session)
    assert session.state == ScannerState.CLOSED


def test_missing_location_is_not_retried(client: HBaseClient, gateway, numbers_table) -> None:
    gateway.omit_location = True
    with pytest.raises(ProtocolViolation) as info:
        client.create_scanner(numbers_table, Scanner(batch=10))
    assert gateway.count("POST", "/scanner") == 1
    assert "Location" in str(info.value)
    assert info.value.operation == "create_scanner"
    assert info.value.context["table"] == numbers_table


def test_scanner_creation_retries_server_failures(
    client: HBaseClient, gateway, numbers_table
) -> None:
    gateway.fail_with(503, 500)
    session = client.create_scanner(numbers_table, Scanner(batch=10))
    assert session.is_open
    assert gateway.count("POST", "/scanner") == 3


def test_concurrent_sessions_are_independent(client: HBaseClient, numbers_table) -> None:
    first = client.create_scanner(numbers_table, Scanner(batch=50, end_row="050"))
    second = client.create_scanner(numbers_table, Scanner(batch=50, start_row="050"))
    assert first.scanner_id != second.scanner_id

    a = client.scanner_get_next(first)
    b = client.scanner_get_next(second)
    assert a.rows[0].key == b"000"
    assert b.rows[0].key == b"050"
    assert client.scanner_get_next(first) is None
    client.delete_scanner(first)
    client.delete_scanner(second)


def test_scan_generator_closes_when_abandoned(client: HBaseClient, gateway, numbers_table) -> None:
    rows = client.scan(numbers_table, Scanner(batch=10))
    first = next(rows)
    assert first.key == b"000"
    assert len(gateway.scanners) == 1
    rows.close()
    assert gateway.scanners == {}


def test_session_options_reused_for_fetch_and_close(
    client: HBaseClient, gateway, numbers_table
) -> None:
    options = RequestOptions(retry_policy=RetryPolicy.no_retry(), alternative_endpoint="")
    session = client.create_scanner(numbers_table, Scanner(batch=200), options=options)
    gateway.options_seen.clear()
    client.scanner_get_next(session)
    client.delete_scanner(session)
    assert gateway.options_seen == [options, options]


def test_client_close_abandons_open_sessions(client: HBaseClient, numbers_table) -> None:
    open_session = client.create_scanner(numbers_table, Scanner(batch=10))
    closed_session = client.create_scanner(numbers_table, Scanner(batch=10))
    client.delete_scanner(closed_session)

    client.close()

    assert open_session.state == ScannerState.ABANDONED
    assert closed_session.state == ScannerState.CLOSED
