"""
Retry helper with exponential backoff and equal jitter.

Each delay is cap/2 + U(0, cap/2) where cap = min(base * 2**(attempt-1), max_delay),
so retries never fire back to back but still spread out.

Example
-------
from spore_sdk.utils.retry import retry_call

txh = retry_call(wallet.submit, signed, retries=3, exceptions=SubmissionError)

Notes
-----
- Only exceptions matching `exceptions` are retried; everything else propagates.
- `retry_if(exc)` returning False re-raises a matching exception immediately.
- `on_retry` callback receives (attempt_index, exception, sleep_seconds).
"""

from __future__ import annotations

import random
import time
from typing import (Any, Callable, Optional, Sequence, Tuple, Type, TypeVar,
                    Union)

__all__ = [
    "RetryError",
    "backoff_delay",
    "retry_call",
]

T = TypeVar("T")


class RetryError(RuntimeError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: BaseException, attempts: int) -> None:
        super().__init__(f"exhausted after {attempts} attempts: {last_exception!r}")
        self.last_exception = last_exception
        self.attempts = attempts


def backoff_delay(attempt: int, *, base: float, max_delay: float) -> float:
    """Equal-jitter delay in seconds for the given attempt (1-based)."""
    if attempt < 1:
        attempt = 1
    cap = min(base * (2 ** (attempt - 1)), max_delay)
    return max(0.0, (cap * 0.5) + random.uniform(0.0, cap * 0.5))


def retry_call(
    fn: Callable[..., T],
    *args: Any,
    retries: int = 5,
    base: float = 0.2,
    max_delay: float = 3.0,
    exceptions: Union[Type[BaseException], Sequence[Type[BaseException]]] = Exception,
    retry_if: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """
    Call `fn(*args, **kwargs)`, retrying up to `retries` times on `exceptions`.

    Raises RetryError (chained to the last failure) once attempts are exhausted.
    """
    if isinstance(exceptions, type):
        exc_types: Tuple[Type[BaseException], ...] = (exceptions,)
    else:
        exc_types = tuple(exceptions)

    attempt = 0
    while True:
        attempt += 1
        try:
            return fn(*args, **kwargs)
        except exc_types as exc:
            if retry_if is not None and not retry_if(exc):
                raise
            if attempt > retries:
                raise RetryError(exc, attempts=attempt) from exc

            sleep_s = backoff_delay(attempt, base=base, max_delay=max_delay)
            if on_retry is not None:
                on_retry(attempt, exc, sleep_s)
            sleep(sleep_s)
