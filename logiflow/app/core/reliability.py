"""
Reliability utilities for store access.

Includes the Circuit Breaker guarding the database and the transient
error classification used by the persistence gateway's retry loop.
"""

import time
import asyncio
from typing import Callable, Any, Optional

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError

from logiflow.app.core.exceptions import CircuitOpenError


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    If 'failure_threshold' consecutive failures occur, the circuit opens
    and rejects calls for 'reset_timeout' seconds.
    """
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: int = 60,
        counts_as_failure: Optional[Callable[[BaseException], bool]] = None,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.counts_as_failure = counts_as_failure or (lambda exc: True)
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED" # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.monotonic() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if self.counts_as_failure(e):
                self.record_failure()
            else:
                # business errors mean the store answered
                self.reset_state()
            raise
        self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


def is_transient(exc: BaseException) -> bool:
    """
    True for store errors worth retrying: dropped connections, lock
    contention and pool exhaustion. Constraint violations are never transient,
    and neither is a unit of work that ran into the statement timeout.
    """
    if isinstance(exc, PoolTimeoutError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, ConnectionError)


async def backoff(attempt: int, base_seconds: float) -> None:
    """Linear backoff between retry attempts."""
    await asyncio.sleep(base_seconds * attempt)
