"""
Cross-cutting helpers for the court session service.

- ``best_effort``: run a side call whose failure must not abort the caller
- ``async_timeout``: bound a coroutine by the configured request deadline
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

from courtroom.app.core.exceptions import raise_timeout_error
from courtroom.app.utils.logging import get_logger
from courtroom.config.settings import get_settings

logger = get_logger(__name__)

T = TypeVar("T")
AsyncF = TypeVar("AsyncF", bound=Callable[..., Awaitable[Any]])


async def best_effort(
    operation: str,
    awaitable: Awaitable[T],
    default: Optional[T] = None,
    **context: Any
) -> Optional[T]:
    """
    Await a side call, returning ``default`` instead of raising on failure.

    The failure is logged as a warning with ``operation`` and ``context``.
    Cancellation is not intercepted.

    Usage:
        snapshot = await best_effort("case_snapshot", repo.find_by_id(cid), case_id=cid)
    """
    try:
        return await awaitable
    except Exception as e:
        logger.warning(
            "Best-effort operation failed",
            operation=operation,
            error_type=type(e).__name__,
            error_message=str(e),
            **context
        )
        return default


def async_timeout(timeout_seconds: Optional[float] = None, error_message: Optional[str] = None):
    """
    Add a deadline to async operations.

    Args:
        timeout_seconds: Timeout in seconds; when omitted the
            ``database.query_timeout_seconds`` setting is read at call time
        error_message: Custom error message for timeout
    """
    def decorator(func: AsyncF) -> AsyncF:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            timeout = timeout_seconds
            if timeout is None:
                timeout = get_settings().database.query_timeout_seconds
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            except asyncio.TimeoutError:
                logger.error(
                    error_message or "Operation timed out",
                    timeout_seconds=timeout,
                    function=func.__name__
                )
                raise_timeout_error(func.__name__, timeout)
        return wrapper  # type: ignore[return-value]
    return decorator
