"""Offset arithmetic and envelope construction for cursor pagination.

Two execution strategies share one window computation so that page
boundaries are identical whether the full candidate sequence is
materialized in memory or the store answers a count plus an
offset/limit query.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple, TypeVar

from app.core.config import settings
from app.schemas.pagination import Cursor, PaginationInfo
from app.services.cursor import decode_cursor_or_none, encode_cursor

T = TypeVar("T")


@dataclass(frozen=True)
class PageWindow:
    start: int
    end: int
    total: int

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def has_next(self) -> bool:
        return self.end < self.total

    @property
    def has_previous(self) -> bool:
        return self.start > 0


def effective_limit(requested_limit: int) -> int:
    return max(0, min(int(requested_limit), settings.PAGINATION_MAX_LIMIT))


def compute_window(total: int, cursor: Cursor | None, limit: int) -> PageWindow:
    total = max(0, int(total))
    if cursor is None:
        start = 0
        end = limit
    elif cursor.direction == "forward":
        start = cursor.offset
        end = cursor.offset + limit
    else:
        end = cursor.offset
        start = max(0, cursor.offset - limit)
    start = min(start, total)
    end = max(start, min(end, total))
    return PageWindow(start=start, end=end, total=total)


def build_pagination_info(window: PageWindow, requested_limit: int) -> PaginationInfo:
    next_cursor = None
    if window.has_next:
        next_cursor = encode_cursor(Cursor(offset=window.end, direction="forward"))
    previous_cursor = None
    if window.has_previous:
        previous_cursor = encode_cursor(Cursor(offset=window.start, direction="backward"))
    if settings.PAGINATION_REPORT_EFFECTIVE_LIMIT:
        page_size = effective_limit(requested_limit)
    else:
        page_size = max(0, int(requested_limit))
    return PaginationInfo(
        has_next=window.has_next,
        has_previous=window.has_previous,
        next_cursor=next_cursor,
        previous_cursor=previous_cursor,
        total_count=window.total,
        page_size=page_size,
    )


def paginate_sequence(
    items: Sequence[T],
    raw_cursor: str | None,
    requested_limit: int,
) -> Tuple[List[T], PaginationInfo]:
    cursor = decode_cursor_or_none(raw_cursor)
    window = compute_window(len(items), cursor, effective_limit(requested_limit))
    data = list(items[window.start : window.end])
    return data, build_pagination_info(window, requested_limit)


def paginate_pushdown(
    count: Callable[[], int],
    fetch_page: Callable[[int, int], List[T]],
    raw_cursor: str | None,
    requested_limit: int,
) -> Tuple[List[T], PaginationInfo]:
    """Paginate against a store that counts and windows on its own.

    ``fetch_page`` receives ``(offset, limit)`` and is skipped for empty windows.
    """
    cursor = decode_cursor_or_none(raw_cursor)
    window = compute_window(count(), cursor, effective_limit(requested_limit))
    data: List[T] = []
    if window.size > 0:
        data = list(fetch_page(window.start, window.size))
    return data, build_pagination_info(window, requested_limit)
