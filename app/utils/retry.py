"""Bounded retry with exponential backoff for flaky reads."""
from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, TypeVar

from app.utils.errors import AppError, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

TERMINAL_KINDS = frozenset(
    {
        ErrorKind.NOT_FOUND,
        ErrorKind.VALIDATION,
        ErrorKind.UNAUTHORIZED,
        ErrorKind.FORBIDDEN,
        ErrorKind.INVALID_STATE,
    }
)

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.2


def is_retryable(exc: BaseException) -> bool:
    """Classified errors retry only for transient kinds; unclassified ones always retry."""

    if isinstance(exc, AppError):
        return exc.kind not in TERMINAL_KINDS
    return isinstance(exc, Exception)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before attempt ``attempt + 1`` (1-based): base, 2*base, 4*base..."""

    return base_delay * (2 ** (attempt - 1))


def call_with_retry(
    fn: Callable[..., T],
    *args: Any,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[BaseException, int], None] | None = None,
    **kwargs: Any,
) -> T:
    """Call ``fn`` until it succeeds, fails terminally, or ``attempts`` run out.

    The last exception is re-raised unchanged.
    """

    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            if not is_retryable(exc) or attempt == attempts:
                raise
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "Retrying after transient failure",
                extra={
                    "operation": getattr(fn, "__name__", repr(fn)),
                    "attempt": attempt,
                    "max_attempts": attempts,
                    "delay_seconds": delay,
                    "error": str(exc),
                },
            )
            if on_retry is not None:
                on_retry(exc, attempt)
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover


def retrying(
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator form of :func:`call_with_retry`."""

    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return call_with_retry(fn, *args, attempts=attempts, base_delay=base_delay, sleep=sleep, **kwargs)

        return wrapper

    return decorator


__all__ = ["call_with_retry", "retrying", "is_retryable", "backoff_delay", "TERMINAL_KINDS"]
