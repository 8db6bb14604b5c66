"""Tests for hbase_rest.retry: attempt accounting, backoff, retryability, listeners."""

from __future__ import annotations

import time

import pytest

from hbase_rest.errors import (
    ClientError,
    ProtocolViolation,
    ServerFailure,
    TransportFailure,
)
from hbase_rest.retry import BackoffStrategy, RetryEventKind, RetryPolicy


def _no_sleep(delays: list[float]):
    return lambda d: delays.append(d)


def test_retry_policy_success_first_try() -> None:
    policy = RetryPolicy(max_retries=2)
    calls: list[int] = []
    result = policy.execute(lambda: (calls.append(1) or 42))
    assert result == 42
    assert len(calls) == 1


def test_retry_policy_retry_then_success() -> None:
    delays: list[float] = []
    policy = RetryPolicy(max_retries=2, initial_delay_sec=0.01, sleep=_no_sleep(delays))
    calls: list[int] = []

    def flaky() -> int:
        calls.append(1)
        if len(calls) < 2:
            raise TransportFailure("connection reset")
        return 99

    assert policy.execute(flaky) == 99
    assert len(calls) == 2
    assert delays == [0.01]


def test_retry_policy_exhaust_retries_raises() -> None:
    policy = RetryPolicy(max_retries=2, initial_delay_sec=0.0)
    calls: list[int] = []

    def always_fail() -> int:
        calls.append(1)
        raise ServerFailure("always fail", 503)

    with pytest.raises(ServerFailure, match="always fail"):
        policy.execute(always_fail)
    assert len(calls) == 3


def test_no_retry_makes_exactly_one_attempt() -> None:
    policy = RetryPolicy.no_retry()
    calls: list[int] = []

    def fail() -> int:
        calls.append(1)
        raise TransportFailure("down")

    with pytest.raises(TransportFailure):
        policy.execute(fail)
    assert len(calls) == 1
    assert policy.max_attempts == 1


def test_fixed_policy_makes_four_spaced_attempts() -> None:
    policy = RetryPolicy.fixed(3, 0.02)
    stamps: list[float] = []

    def fail() -> int:
        stamps.append(time.monotonic())
        raise TransportFailure("down")

    with pytest.raises(TransportFailure):
        policy.execute(fail)
    assert len(stamps) == 4
    gaps = [b - a for a, b in zip(stamps, stamps[1:])]
    assert all(g >= 0.02 * 0.9 for g in gaps)


@pytest.mark.parametrize(
    "error",
    [
        ClientError("bad request", 400),
        ProtocolViolation("no Location header"),
        ValueError("bad argument"),
    ],
)
def test_non_retryable_failures_raise_immediately(error: Exception) -> None:
    policy = RetryPolicy(max_retries=5, initial_delay_sec=0.0)
    calls: list[int] = []

    def fail() -> int:
        calls.append(1)
        raise error

    with pytest.raises(type(error)):
        policy.execute(fail)
    assert len(calls) == 1


def test_retry_policy_should_retry_override() -> None:
    policy = RetryPolicy(max_retries=2, initial_delay_sec=0.0)
    calls: list[int] = []

    def fail_twice() -> int:
        calls.append(1)
        if len(calls) < 3:
            raise ValueError("retry me")
        return 1

    result = policy.execute(fail_twice, should_retry=lambda e: "retry" in str(e))
    assert result == 1
    assert len(calls) == 3


def test_retry_policy_clamps_max_retries() -> None:
    policy = RetryPolicy(max_retries=-1)
    assert policy._max_retries == 0
    assert policy.max_attempts == 1


def test_retry_policy_clamps_delays() -> None:
    policy = RetryPolicy(initial_delay_sec=-1.0, max_delay_sec=-5.0, backoff_multiplier=0.5)
    assert policy._initial_delay == 0.0
    assert policy._max_delay == 0.0
    assert policy._backoff_multiplier == 1.0


def test_delay_for_strategies() -> None:
    exp = RetryPolicy(initial_delay_sec=1.0, max_delay_sec=5.0, backoff_multiplier=2.0)
    assert [exp.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    linear = RetryPolicy(
        initial_delay_sec=0.5, max_delay_sec=10.0, strategy=BackoffStrategy.LINEAR
    )
    assert [linear.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 1.5]

    fixed = RetryPolicy.fixed(3, 0.25)
    assert {fixed.delay_for(n) for n in (1, 2, 3)} == {0.25}


def test_listener_receives_attempt_events() -> None:
    events = []
    policy = RetryPolicy.fixed(2, 0.0, listener=events.append)
    calls: list[int] = []

    def flaky() -> str:
        calls.append(1)
        if len(calls) == 1:
            raise TransportFailure("first attempt fails")
        return "ok"

    assert policy.execute(flaky) == "ok"
    kinds = [(e.kind, e.attempt) for e in events]
    assert kinds == [
        (RetryEventKind.ATTEMPT_STARTED, 1),
        (RetryEventKind.ATTEMPT_FAILED, 1),
        (RetryEventKind.ATTEMPT_STARTED, 2),
        (RetryEventKind.ATTEMPT_SUCCEEDED, 2),
    ]
    assert isinstance(events[1].error, TransportFailure)
    assert events[1].delay_sec == 0.0
    assert all(e.max_attempts == 3 for e in events)


def test_listener_failure_does_not_change_outcome() -> None:
    def broken_listener(event) -> None:
        raise RuntimeError("listener bug")

    policy = RetryPolicy.fixed(1, 0.0, listener=broken_listener)
    calls: list[int] = []

    def flaky() -> int:
        calls.append(1)
        if len(calls) == 1:
            raise TransportFailure("down")
        return 7

    assert policy.execute(flaky) == 7
    assert len(calls) == 2


def test_with_listener_copies_policy() -> None:
    events = []
    base = RetryPolicy.fixed(2, 0.0)
    observed = base.with_listener(events.append)
    observed.execute(lambda: 1)
    assert base._listener is None
    assert observed.max_attempts == base.max_attempts
    assert len(events) == 2


def test_max_elapsed_stops_retrying() -> None:
    policy = RetryPolicy.fixed(10, 0.03, max_elapsed_sec=0.05)
    calls: list[int] = []

    def fail() -> int:
        calls.append(1)
        raise TransportFailure("down")

    with pytest.raises(TransportFailure):
        policy.execute(fail)
    assert 1 < len(calls) < 11
