# -*- coding: utf-8 -*-
"""
Bounded retry with exponential backoff.

    policy = RetryPolicy(max_attempts=3, initial_delay=0.2)
    result = with_retry(lambda: create(...), policy, retry_on=(OperationalError,))

Only exceptions listed in ``retry_on`` are retried; anything else propagates
immediately. When the attempts run out the last exception is re-raised.
"""
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.retry')

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 0.2
    multiplier: float = 2.0
    max_delay: float = 5.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay cannot be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        delay = self.initial_delay * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay)


def with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    attempt = 1
    while True:
        try:
            return fn()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                logger.warning(
                    "Retry attempts exhausted",
                    attempts=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            delay = policy.delay_for(attempt)
            logger.info(
                "Retrying after failure",
                attempt=attempt,
                next_delay_seconds=delay,
                error_type=type(e).__name__,
            )
            if on_retry is not None:
                on_retry(attempt, e)
            sleep(delay)
            attempt += 1
