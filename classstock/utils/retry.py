import random
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


def with_backoff(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter_ratio: float = 0.1,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn, retrying with exponential backoff and jitter.
    - retry_on: exception types eligible for a retry
    - should_retry: predicate that can veto a retry (e.g. 4xx responses)
    - on_retry: callback (attempt_number, exc, delay_seconds) before sleeping
    The last exception is re-raised once attempts run out.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if should_retry is not None and not should_retry(exc):
                raise
            if attempt == attempts:
                raise
            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            delay *= 1.0 + random.uniform(-jitter_ratio, jitter_ratio)
            delay = max(0.0, delay)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            sleep(delay)
    raise AssertionError("unreachable")
