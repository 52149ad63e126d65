"""Bounded exponential backoff for calls to hosted analysis services."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 503})

TRANSIENT_MARKERS = (
    "service unavailable",
    "too many requests",
    "rate limit",
    "overloaded",
    "resource exhausted",
)


def _status_code(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "status_code", None)
    if code is None:
        response = getattr(exc, "response", None)
        code = getattr(response, "status_code", None)
    try:
        return int(code) if code is not None else None
    except (TypeError, ValueError):
        return None


def is_transient_error(exc: BaseException) -> bool:
    """Return True when ``exc`` signals an overloaded or rate-limited upstream."""
    if _status_code(exc) in TRANSIENT_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
) -> T:
    """Await ``operation()`` retrying transient failures with exponential backoff.

    Waits ``base_delay * 2**attempt`` seconds between attempts and makes at
    most ``max_attempts`` calls. Errors that are not transient are raised
    immediately; after the last attempt the last transient error is raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_err: Optional[BaseException] = None

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            last_err = exc
            if attempt + 1 >= max_attempts:
                break
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "Transient upstream failure; backing off",
                extra={"attempt": attempt + 1, "max_attempts": max_attempts, "delay": delay, "error": str(exc)},
            )
            await sleep(delay)

    logger.error(
        "Retries exhausted",
        extra={"max_attempts": max_attempts, "error": str(last_err)},
    )
    if last_err is None:
        raise RuntimeError("with_retry made no attempts")
    raise last_err


def retry_transient(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of :func:`with_retry` for coroutine functions."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(
                lambda: fn(*args, **kwargs),
                max_attempts=max_attempts,
                base_delay=base_delay,
            )

        return wrapper

    return decorator
