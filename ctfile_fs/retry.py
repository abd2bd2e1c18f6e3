"""
Retry with exponential backoff for remote CTFile calls.

Every request that leaves the process goes through RetryExecutor.run(), which
repeats the call on transient failures and re-raises anything else untouched.
"""

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from .config import ConnectionConfig
from .exceptions import CTFileError, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Message fragments that mark an opaque third-party error as transient
TRANSIENT_PATTERNS = (
    "connection",
    "timeout",
    "network",
    "temporary",
    "unavailable",
    "busy",
    "overloaded",
)

JITTER_RATIO = 0.1


class RetryExecutor:
    """
    Runs a callable with bounded retries and exponential backoff.

    The delay before retry n (0-based) is
    ``min(max_delay, base_delay * backoff_multiplier ** n)`` plus up to 10%
    random jitter. Delays are in milliseconds; sleeping blocks the caller.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        backoff_multiplier: float = 2.0,
        max_delay_ms: int = 30000,
        retryable_exceptions: tuple[type[BaseException], ...] = (),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_retries = max(0, max_retries)
        self.base_delay_ms = max(0, base_delay_ms)
        self.backoff_multiplier = max(1.0, backoff_multiplier)
        self.max_delay_ms = max(self.base_delay_ms, max_delay_ms)
        self.retryable_exceptions = tuple(retryable_exceptions)
        self._sleep = sleep

    @classmethod
    def from_config(cls, conn_config: ConnectionConfig) -> "RetryExecutor":
        return cls(
            max_retries=conn_config.retry_attempts,
            base_delay_ms=conn_config.retry_base_delay_ms,
            backoff_multiplier=conn_config.retry_backoff_multiplier,
            max_delay_ms=conn_config.retry_max_delay_ms,
        )

    def run(self, operation: Callable[[], T], context: str = "") -> T:
        """
        Execute operation, retrying transient failures.

        Args:
            operation: Zero-argument callable performing one remote call.
            context: Short description used in log messages.

        Returns:
            Whatever operation returns.

        Raises:
            The last exception raised by operation, unchanged.
        """
        attempt = 0
        while True:
            try:
                result = operation()
            except Exception as e:
                if not self.should_retry(e):
                    logger.debug("%s failed with non-retryable error: %s", context, e)
                    raise
                if attempt >= self.max_retries:
                    logger.error(
                        "%s failed after %d attempts: %s", context, attempt + 1, e
                    )
                    raise

                delay_ms = self.calculate_delay(attempt)
                if isinstance(e, RateLimitedError) and e.retry_after:
                    # The server said how long to back off; never wait less
                    delay_ms = max(delay_ms, int(e.retry_after * 1000))
                    logger.warning(
                        "%s rate limited (attempt %d/%d), server asked to wait %ss",
                        context,
                        attempt + 1,
                        self.max_retries + 1,
                        e.retry_after,
                    )
                else:
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %dms: %s",
                        context,
                        attempt + 1,
                        self.max_retries + 1,
                        delay_ms,
                        e,
                    )
                self._sleep(delay_ms / 1000.0)
                attempt += 1
                continue

            if attempt > 0:
                logger.info("%s succeeded after %d retries", context, attempt)
            return result

    def should_retry(self, exc: BaseException) -> bool:
        """Decide whether exc is worth another attempt."""
        if isinstance(exc, CTFileError):
            return exc.retryable
        if self.retryable_exceptions and isinstance(exc, self.retryable_exceptions):
            return True

        message = str(exc).lower()
        return any(pattern in message for pattern in TRANSIENT_PATTERNS)

    def calculate_delay(self, attempt: int) -> int:
        """Delay in milliseconds before retry number ``attempt`` (0-based)."""
        delay = min(
            float(self.max_delay_ms),
            self.base_delay_ms * (self.backoff_multiplier**attempt),
        )
        jitter = random.uniform(0, delay * JITTER_RATIO)
        return int(delay + jitter)
