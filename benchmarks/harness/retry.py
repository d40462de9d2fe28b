"""Classification-based retry with exponential backoff for a single remote call.

A transient failure (HTTP 5xx or 429) is retried up to `max_retries` times,
sleeping base_delay_ms * 2**(attempt-1) between attempts, or the server's
retry-after hint when that is longer. No jitter is applied. Anything else is
re-raised immediately. A transient failure that outlives its retries is
re-raised as PermanentBackendError.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from benchmarks.harness.common import RETRY_BASE_DELAY_MS, RETRY_MAX_RETRIES
from benchmarks.harness.errors import PermanentBackendError, is_transient_status

log = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]


def error_status(error: BaseException) -> int | None:
    """HTTP status carried by an exception, if any (`status` or `status_code`)."""
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_retryable(error: BaseException) -> bool:
    return is_transient_status(error_status(error))


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = RETRY_MAX_RETRIES
    base_delay_ms: float = RETRY_BASE_DELAY_MS
    is_retryable: Callable[[BaseException], bool] = field(default=is_retryable)

    def delay_ms(self, attempt: int, error: BaseException | None = None) -> float:
        """Backoff before retry number `attempt` (1-based)."""
        delay = self.base_delay_ms * 2 ** (attempt - 1)
        hint = getattr(error, "retry_after_ms", None)
        if isinstance(hint, int | float) and hint > delay:
            delay = float(hint)
        return delay


def execute_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: RetryCallback | None = None,
) -> T:
    """Run `operation`, retrying transient failures according to `policy`.

    `sleep` receives seconds. `on_retry(attempt, error, delay_ms)` is called
    before each backoff, e.g. to update a progress line.
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return operation()
        except Exception as e:
            if not policy.is_retryable(e):
                raise
            if attempt >= policy.max_retries:
                raise PermanentBackendError(
                    f"Gave up after {policy.max_retries} retries: {e}",
                    status=error_status(e),
                ) from e
            attempt += 1
            delay = policy.delay_ms(attempt, e)
            log.warning(
                "    %s: retry %d/%d in %.0f ms",
                error_status(e) or type(e).__name__,
                attempt,
                policy.max_retries,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt, e, delay)
            sleep(delay / 1000)


class RetryExecutor:
    """A RetryPolicy bound to a sleep function; call it with a zero-arg operation."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def __call__(self, operation: Callable[[], T], on_retry: RetryCallback | None = None) -> T:
        return execute_with_retry(operation, self.policy, sleep=self._sleep, on_retry=on_retry)
