"""
Retry helpers for the data pipeline.

The BLS Public API and the BLS/O*NET download sites time out or answer
5xx now and then. ``exponential_backoff`` retries a call on a fixed or
growing schedule, and ``CircuitBreaker`` stops calling a source after
repeated failures until it has had time to recover.
"""

import functools
import time
from itertools import count
from typing import Callable, Iterator, Optional, Sequence, Tuple, Type

import requests

RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})

TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "connection",
    "temporary failure",
    "service unavailable",
    "429",
    "500",
    "502",
    "503",
)


class RetryError(Exception):
    """All attempts failed; the last error is the ``__cause__``."""


class CircuitOpenError(Exception):
    """The breaker is open and the call was not made."""


def _delay_schedule(
    base_delay: float,
    exponential_base: float,
    max_delay: float,
    delays: Optional[Sequence[float]],
) -> Iterator[float]:
    # an explicit schedule repeats its last entry once exhausted
    for n in count():
        if delays:
            delay = delays[min(n, len(delays) - 1)]
        else:
            delay = base_delay * exponential_base ** n
        yield min(delay, max_delay)


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    delays: Optional[Sequence[float]] = None,
):
    """
    Retry the decorated function when it raises one of ``exceptions``.

    Args:
        max_retries: Retries after the first call (0 = call once)
        base_delay: First delay in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between delays
        exceptions: Exception types that trigger a retry
        on_retry: Called as on_retry(attempt, exception, delay) before sleeping
        delays: Fixed schedule, e.g. (1, 2, 4); replaces base_delay/exponential_base

    Raises:
        RetryError: after max_retries + 1 failed calls

    Example:
        @exponential_backoff(max_retries=3, delays=(1, 2, 4))
        def fetch_batch(series_ids):
            return session.post(BLS_API_URL, json=payload)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            schedule = _delay_schedule(base_delay, exponential_base, max_delay, delays)
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt > max_retries:
                        raise RetryError(f"Failed after {attempt} attempts: {e}") from e
                    delay = next(schedule)
                    if on_retry:
                        on_retry(attempt, e, delay)
                    time.sleep(delay)

        return wrapper
    return decorator


class CircuitBreaker:
    """
    Stop calling a failing service for ``recovery_timeout`` seconds.

    CLOSED passes calls through and counts consecutive failures. At
    ``failure_threshold`` the breaker goes OPEN and rejects calls with
    CircuitOpenError. Once the timeout has passed the next call is let
    through as a HALF_OPEN trial call: success closes the breaker, failure
    opens it again.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        expected_exception: Type[Exception] = Exception,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.clock = clock
        self.reset()

    def reset(self):
        """Close the breaker and forget past failures."""
        self.state = self.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None

    def remaining_timeout(self) -> float:
        if self.opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self.clock() - self.opened_at))

    def call(self, func: Callable, *args, **kwargs):
        """Run ``func`` unless the breaker is open."""
        if self.state == self.OPEN:
            wait = self.remaining_timeout()
            if wait > 0:
                raise CircuitOpenError(
                    f"Circuit breaker is OPEN. Service unavailable. Retry after {wait:.0f}s"
                )
            self.state = self.HALF_OPEN

        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self.failure_count += 1
            if self.state == self.HALF_OPEN or self.failure_count >= self.failure_threshold:
                self.state = self.OPEN
                self.opened_at = self.clock()
            raise

        self.reset()
        return result


def should_retry_http_status(status_code: int) -> bool:
    """True for timeouts, rate limiting and 5xx gateway/server errors."""
    return status_code in RETRYABLE_STATUS


def is_transient_error(exception: Exception) -> bool:
    """
    Guess whether retrying ``exception`` could succeed.

    requests timeouts and connection errors always qualify, HTTPError
    qualifies by status, anything else by its message.
    """
    if isinstance(exception, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return True
    if isinstance(exception, requests.exceptions.HTTPError) and exception.response is not None:
        return should_retry_http_status(exception.response.status_code)

    message = str(exception).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)
