"""
Retry policy with exponential backoff for provider API calls.

Every provider sync client consumes the same declared ``RetryPolicy`` rather
than writing its own loop. Only errors raised as ``RetryableError`` are
retried; anything else (authorization failures in particular) propagates on
the first attempt.
"""
import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar

from seo_sync.config import get_settings
from seo_sync.utils.logger import log

T = TypeVar("T")


class RetryableError(Exception):
    """A single-call failure that is worth retrying."""


class RateLimitHit(RetryableError):
    """Provider answered 429 / RESOURCE_EXHAUSTED."""


class TransientFailure(RetryableError):
    """Network error or 5xx from the provider."""


@dataclass
class RetryStats:
    """Tracks retry statistics for a single operation."""
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    success: bool = False

    def record_attempt(self, error: Optional[Exception] = None, delay: float = 0.0):
        """Record a retry attempt."""
        self.attempts += 1
        self.total_delay_seconds += delay
        if error:
            error_str = f"{type(error).__name__}: {str(error)}"
            self.last_error = error_str
            self.errors.append(error_str)

    def mark_success(self):
        """Mark the operation as successful."""
        self.success = True

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/storage."""
        return {
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 2),
            "success": self.success,
            "last_error": self.last_error,
            "errors": self.errors[:5]  # Cap at 5 errors
        }


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: float = 0.25
) -> float:
    """
    Calculate delay for exponential backoff.

    Args:
        attempt: Current attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential_base: Base for exponential calculation
        jitter: Upper bound of the random fraction added to the delay

    Returns:
        Delay in seconds
    """
    # Exponential backoff: base_delay * (exponential_base ^ (attempt - 1))
    delay = base_delay * (exponential_base ** (attempt - 1))

    # Cap at max_delay
    delay = min(delay, max_delay)

    if jitter > 0:
        delay += delay * random.uniform(0, jitter)

    return delay


@dataclass
class RetryPolicy:
    """
    Bounded retry with exponential backoff and jitter.

    Usage:
        policy = RetryPolicy(max_attempts=3)
        page = await policy.run(lambda: fetch_page(offset), operation_name="gsc page 0")
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.25
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            max_attempts=settings.sync_retry_max_attempts,
            base_delay=settings.sync_retry_base_delay,
            max_delay=settings.sync_retry_max_delay,
            jitter=settings.sync_retry_jitter,
        )

    def delay_for(self, attempt: int) -> float:
        return calculate_backoff(
            attempt,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
        )

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
        stats: Optional[RetryStats] = None,
    ) -> T:
        """
        Execute ``operation`` with retry logic.

        Raises the last ``RetryableError`` once attempts are exhausted, and
        any non-retryable error immediately.
        """
        stats = stats if stats is not None else RetryStats()

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await operation()
                stats.record_attempt()
                stats.mark_success()

                if attempt > 1:
                    log.info(
                        f"{operation_name} succeeded on attempt {attempt} "
                        f"after {stats.total_delay_seconds:.1f}s total delay"
                    )
                return result

            except RetryableError as e:
                if attempt >= self.max_attempts:
                    stats.record_attempt(error=e)
                    log.error(f"{operation_name} failed after {attempt} attempts: {e}")
                    raise

                delay = self.delay_for(attempt)
                stats.record_attempt(error=e, delay=delay)

                log.warning(
                    f"{operation_name} attempt {attempt} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await self.sleep(delay)

        # max_attempts < 1
        raise RuntimeError("Retry exhausted")
