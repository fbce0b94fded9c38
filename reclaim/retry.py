"""Retry with backoff for package-manager operations.

Hosted runners often have `unattended-upgrades` or `apt-daily` holding the
dpkg lock for the first minute or two after boot. A purge that loses that
race is retried instead of being reported as a failure.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryStrategy(Enum):
    """Available backoff strategies."""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the initial try)
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound on any single delay
        exponential_base: Growth factor for exponential backoff
        jitter: Whether to randomize delays
        jitter_range: Jitter as a fraction of the delay (0.0 to 1.0)
        strategy: Backoff strategy
        retryable_exceptions: Exception types that trigger a retry
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    retryable_exceptions: Tuple[Type[Exception], ...] = ()

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0 <= self.jitter_range <= 1:
            raise ValueError("jitter_range must be between 0 and 1")


@dataclass
class RetryResult:
    """Result of a retried operation.

    `result` holds the value of the last attempt, whether or not that
    attempt was deemed successful, so callers can inspect what went wrong.
    """
    success: bool
    result: Any = None
    attempts: int = 0
    total_time: float = 0.0
    errors: List[Exception] = field(default_factory=list)


class RetryManager:
    """Runs a callable until it succeeds or attempts run out."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    def _calculate_delay(self, attempt: int) -> float:
        """Delay in seconds after the given 0-indexed attempt."""
        if self.config.strategy == RetryStrategy.CONSTANT:
            delay = self.config.base_delay
        elif self.config.strategy == RetryStrategy.LINEAR:
            delay = self.config.base_delay * (attempt + 1)
        else:
            delay = self.config.base_delay * (self.config.exponential_base ** attempt)

        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            jitter_amount = delay * self.config.jitter_range
            delay = max(0.0, delay + random.uniform(-jitter_amount, jitter_amount))

        return delay

    def execute(
        self,
        func: Callable[..., Any],
        *args,
        retry_if: Optional[Callable[[Any], bool]] = None,
        **kwargs,
    ) -> RetryResult:
        """Execute `func`, retrying on configured exceptions or results.

        Args:
            func: The callable to run
            *args: Positional arguments for `func`
            retry_if: Predicate on the return value; True means the attempt
                failed transiently and should be retried
            **kwargs: Keyword arguments for `func`

        Returns:
            RetryResult describing the final attempt. Exceptions that are not
            listed in `retryable_exceptions` propagate unchanged.
        """
        start_time = time.time()
        errors: List[Exception] = []
        result: Any = None

        for attempt in range(self.config.max_attempts):
            last_attempt = attempt == self.config.max_attempts - 1
            try:
                result = func(*args, **kwargs)
            except self.config.retryable_exceptions as e:
                errors.append(e)
                result = None
                if last_attempt:
                    logger.error(f"All {self.config.max_attempts} attempts failed. Final error: {e}")
                    break
            else:
                if retry_if is None or not retry_if(result):
                    return RetryResult(
                        success=True,
                        result=result,
                        attempts=attempt + 1,
                        total_time=time.time() - start_time,
                        errors=errors,
                    )
                if last_attempt:
                    logger.error(f"All {self.config.max_attempts} attempts hit a transient failure")
                    break

            delay = self._calculate_delay(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{self.config.max_attempts} failed transiently. "
                f"Retrying in {delay:.2f}s..."
            )
            time.sleep(delay)

        return RetryResult(
            success=False,
            result=result,
            attempts=self.config.max_attempts,
            total_time=time.time() - start_time,
            errors=errors,
        )


# dpkg lock holders on a fresh runner usually finish within a minute
DPKG_LOCK_RETRY_CONFIG = RetryConfig(
    max_attempts=5,
    base_delay=3.0,
    max_delay=30.0,
    strategy=RetryStrategy.EXPONENTIAL,
    jitter=False,
)
