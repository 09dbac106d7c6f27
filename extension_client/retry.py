"""Retry with exponential backoff for calls to the gateway."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay_seconds: float = 30.0

    def calculate_delay(self, attempt: int) -> float:
        """
        Delay after the given failed attempt (1-indexed): 2s, 4s, 8s...
        """
        delay = self.initial_delay_seconds * (self.backoff_multiplier ** attempt)
        return min(delay, self.max_delay_seconds)


def retry_with_backoff(
    fn: Callable[[], T],
    config: RetryConfig = RetryConfig(),
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it succeeds or max_attempts is reached.

    Raises:
        The last exception once attempts are exhausted
    """
    if config.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        try:
            return fn()
        except retry_on as exc:
            attempt += 1
            if attempt >= config.max_attempts:
                raise
            delay = config.calculate_delay(attempt)
            logger.warning("Attempt failed, retrying", extra={
                "attempt": attempt,
                "delay_seconds": delay,
                "error": str(exc),
            })
            sleep(delay)
