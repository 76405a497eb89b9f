import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _found(result) -> bool:
    return result is not None


class RetryPolicy:
    """
    Bounded retry for eventually-consistent reads (e.g. a profile row that a
    signup trigger has not written yet). Exceptions raised by the call propagate.
    """

    def __init__(self, max_attempts: int = 3, delay: float = 0.5, backoff: float = 2.0,
                 sleep: Callable[[float], None] = time.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff
        self.sleep = sleep

    def run(self, fn: Callable[[], T], until: Callable[[T], bool] = _found, label: Optional[str] = None) -> T:
        """Call fn until `until(result)` holds; returns the last result either way."""
        result = None
        wait = self.delay
        for attempt in range(1, self.max_attempts + 1):
            result = fn()
            if until(result):
                return result
            if attempt < self.max_attempts:
                logger.debug("%s not ready (attempt %d/%d), retrying in %.2fs",
                             label or "read", attempt, self.max_attempts, wait)
                self.sleep(wait)
                wait *= self.backoff
        logger.info("%s still not ready after %d attempts", label or "read", self.max_attempts)
        return result
