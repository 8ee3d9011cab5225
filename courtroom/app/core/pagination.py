"""
Concurrent pagination for list endpoints.

A listing needs two independent reads: the page of records and the total
number of matching records. ``paginate`` runs both as concurrent tasks and
waits for both before building page metadata. A failure reading the page
fails the request. A failure counting only degrades the total to the
number of records actually returned.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, TypeVar

from courtroom.app.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

FindPage = Callable[[int, int], Awaitable[List[T]]]
CountTotal = Callable[[], Awaitable[int]]


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page number and page size."""

    page: int = 0
    limit: int = 10

    def __post_init__(self):
        if self.page < 0:
            raise ValueError(f"page must be >= 0, got {self.page}")
        if self.limit <= 0:
            raise ValueError(f"limit must be > 0, got {self.limit}")

    @classmethod
    def normalized(cls, page: int, limit: int, default_limit: int) -> "PageRequest":
        """Clamp a negative page to 0 and replace a non-positive limit with ``default_limit``."""
        return cls(page=max(page, 0), limit=limit if limit > 0 else default_limit)

    @property
    def skip(self) -> int:
        return self.page * self.limit


@dataclass
class Page(Generic[T]):
    """One page of results with its paging metadata."""

    items: List[T]
    page: int
    limit: int
    total_count: int
    count_degraded: bool = field(default=False)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit > 0 else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages - 1

    @property
    def has_prev(self) -> bool:
        return self.page > 0


async def paginate(
    find: FindPage[T],
    count: CountTotal,
    request: PageRequest,
    operation: str = "paginate"
) -> Page[T]:
    """
    Fetch one page and the total count concurrently.

    Args:
        find: Coroutine factory returning the records for ``(skip, limit)``
        count: Coroutine factory returning the total number of matches
        request: Page to fetch
        operation: Name used in log records

    Returns:
        The requested page

    Raises:
        Whatever ``find`` raises. Errors from ``count`` are logged and the
        total falls back to the page length.
    """
    find_task = asyncio.ensure_future(find(request.skip, request.limit))
    count_task = asyncio.ensure_future(count())

    try:
        items, total = await asyncio.gather(find_task, count_task, return_exceptions=True)
    except asyncio.CancelledError:
        find_task.cancel()
        count_task.cancel()
        raise

    if isinstance(items, BaseException):
        raise items

    degraded = False
    if isinstance(total, BaseException):
        logger.warning(
            "Count failed, falling back to page length",
            operation=operation,
            error_type=type(total).__name__,
            error_message=str(total),
            page_length=len(items)
        )
        total = len(items)
        degraded = True

    return Page(
        items=items,
        page=request.page,
        limit=request.limit,
        total_count=total,
        count_degraded=degraded
    )
