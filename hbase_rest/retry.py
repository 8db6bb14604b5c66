"""
Retry logic with fixed, linear or exponential backoff for gateway calls.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, TypeVar

from hbase_rest.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY_SEC,
    DEFAULT_RETRY_DELAY_SEC,
)
from hbase_rest.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackoffStrategy(Enum):
    """Backoff strategies."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class RetryEventKind(Enum):
    """Attempt notifications emitted by RetryPolicy.execute."""

    ATTEMPT_STARTED = "attempt_started"
    ATTEMPT_FAILED = "attempt_failed"
    ATTEMPT_SUCCEEDED = "attempt_succeeded"


@dataclass(frozen=True)
class RetryEvent:
    """One attempt notification. attempt is 1-based."""

    kind: RetryEventKind
    attempt: int
    max_attempts: int
    error: BaseException | None = None
    delay_sec: float | None = None


RetryListener = Callable[[RetryEvent], None]


class RetryPolicy:
    """
    Retry policy with configurable backoff.
    Stateless between calls; the attempt counter lives inside execute().
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay_sec: float = DEFAULT_RETRY_DELAY_SEC,
        max_delay_sec: float = DEFAULT_MAX_RETRY_DELAY_SEC,
        backoff_multiplier: float = 2.0,
        strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL,
        should_retry: Callable[[Exception], bool] | None = None,
        max_elapsed_sec: float | None = None,
        listener: RetryListener | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            max_retries: Maximum number of retry attempts (0 = no retries)
            initial_delay_sec: Delay before the first retry
            max_delay_sec: Maximum delay between retries
            backoff_multiplier: Multiplier for exponential backoff
            strategy: How the delay grows between attempts
            should_retry: Retryability predicate (default: transport and server failures)
            max_elapsed_sec: Stop retrying once a call has been running this long
            listener: Optional callback receiving RetryEvent notifications
            sleep: Sleep function (injectable for tests)
        """
        self._max_retries = max(0, max_retries)
        self._initial_delay = max(0.0, initial_delay_sec)
        self._max_delay = max(self._initial_delay, max_delay_sec)
        self._backoff_multiplier = max(1.0, backoff_multiplier)
        self._strategy = strategy
        self._should_retry = should_retry or is_retryable
        self._max_elapsed = max_elapsed_sec
        self._listener = listener
        self._sleep = sleep

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """One attempt, failures propagate immediately."""
        return cls(max_retries=0, initial_delay_sec=0.0)

    @classmethod
    def fixed(cls, max_retries: int, delay_sec: float, **kwargs) -> RetryPolicy:
        """Retry up to max_retries times, waiting delay_sec between attempts."""
        return cls(
            max_retries=max_retries,
            initial_delay_sec=delay_sec,
            max_delay_sec=delay_sec,
            strategy=BackoffStrategy.FIXED,
            **kwargs,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_retries + 1

    def with_listener(self, listener: RetryListener | None) -> RetryPolicy:
        """Return a copy of this policy that reports to listener."""
        return RetryPolicy(
            max_retries=self._max_retries,
            initial_delay_sec=self._initial_delay,
            max_delay_sec=self._max_delay,
            backoff_multiplier=self._backoff_multiplier,
            strategy=self._strategy,
            should_retry=self._should_retry,
            max_elapsed_sec=self._max_elapsed,
            listener=listener,
            sleep=self._sleep,
        )

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1 = first retry)."""
        n = max(1, retry_number)
        if self._strategy == BackoffStrategy.FIXED:
            delay = self._initial_delay
        elif self._strategy == BackoffStrategy.LINEAR:
            delay = self._initial_delay * n
        else:
            delay = self._initial_delay * (self._backoff_multiplier ** (n - 1))
        return min(delay, self._max_delay)

    def execute(
        self,
        func: Callable[[], T],
        should_retry: Callable[[Exception], bool] | None = None,
    ) -> T:
        """
        Execute a function with retry logic.

        Args:
            func: Function to execute (no arguments)
            should_retry: Optional override of the policy's retryability predicate

        Returns:
            Function result

        Raises:
            Last exception if all retries exhausted or the failure is not retryable
        """
        predicate = should_retry or self._should_retry
        started = time.monotonic()
        max_attempts = self.max_attempts

        for attempt in range(1, max_attempts + 1):
            self._notify(RetryEvent(RetryEventKind.ATTEMPT_STARTED, attempt, max_attempts))
            try:
                result = func()
            except Exception as e:
                if not predicate(e):
                    self._notify(
                        RetryEvent(RetryEventKind.ATTEMPT_FAILED, attempt, max_attempts, e)
                    )
                    raise

                if attempt >= max_attempts:
                    self._notify(
                        RetryEvent(RetryEventKind.ATTEMPT_FAILED, attempt, max_attempts, e)
                    )
                    logger.debug("Retry exhausted after %d attempts: %s", attempt, e)
                    raise

                elapsed = time.monotonic() - started
                if self._max_elapsed is not None and elapsed >= self._max_elapsed:
                    self._notify(
                        RetryEvent(RetryEventKind.ATTEMPT_FAILED, attempt, max_attempts, e)
                    )
                    logger.debug(
                        "Retry window of %.2fs elapsed after %d attempts: %s",
                        self._max_elapsed,
                        attempt,
                        e,
                    )
                    raise

                delay = self.delay_for(attempt)
                self._notify(
                    RetryEvent(
                        RetryEventKind.ATTEMPT_FAILED, attempt, max_attempts, e, delay
                    )
                )
                logger.debug(
                    "Retry attempt %d/%d after %.2fs: %s",
                    attempt,
                    self._max_retries,
                    delay,
                    e,
                )
                if delay > 0:
                    self._sleep(delay)
                continue

            self._notify(
                RetryEvent(RetryEventKind.ATTEMPT_SUCCEEDED, attempt, max_attempts)
            )
            return result

        raise RuntimeError("Retry logic error")

    def _notify(self, event: RetryEvent) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event)
        except Exception as e:
            logger.warning("Retry listener failed on %s: %s", event.kind.value, e)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self._max_retries}, "
            f"strategy={self._strategy.value}, initial_delay_sec={self._initial_delay})"
        )
