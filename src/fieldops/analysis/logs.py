"""
Log table data: activities that carry a "Contador Log" value, sorted by that
counter and served one page at a time.
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Union

from fieldops.mapping.field_mapper import COL_CONTADOR_LOG
from fieldops.models.activity import ActivityRecord

ITEMS_PER_PAGE = 100
MAX_VISIBLE_PAGES = 5
ELLIPSIS = "..."


@dataclass
class LogPage:
    items: List[ActivityRecord]
    page: int
    total_pages: int
    total_items: int
    first_index: int  # 1-based, 0 when empty
    last_index: int


def _counter(record: ActivityRecord) -> str:
    return str(record.get(COL_CONTADOR_LOG) or "").strip()


def filter_logs(records: Iterable[ActivityRecord]) -> List[ActivityRecord]:
    """Keep only records with a non-empty log counter."""
    return [r for r in records if _counter(r)]


def sort_logs(records: Iterable[ActivityRecord], order: str = "asc") -> List[ActivityRecord]:
    if order not in ("asc", "desc"):
        raise ValueError(f"order must be 'asc' or 'desc', got {order!r}")
    return sorted(records, key=lambda r: _counter(r).casefold(), reverse=(order == "desc"))


def paginate(
    records: List[ActivityRecord], page: int = 1, per_page: int = ITEMS_PER_PAGE
) -> LogPage:
    """Slice one page; out-of-range page numbers are clamped."""
    total_items = len(records)
    total_pages = math.ceil(total_items / per_page) if per_page > 0 else 0
    page = max(1, min(page, total_pages or 1))

    start = (page - 1) * per_page
    items = records[start:start + per_page]
    return LogPage(
        items=items,
        page=page,
        total_pages=total_pages,
        total_items=total_items,
        first_index=start + 1 if items else 0,
        last_index=start + len(items),
    )


def page_numbers(
    current: int, total: int, max_visible: int = MAX_VISIBLE_PAGES
) -> List[Union[int, str]]:
    """
    Page buttons for the pager: first, last, neighbours of current, with
    "..." where pages are skipped.

    >>> page_numbers(5, 10)
    [1, '...', 4, 5, 6, '...', 10]
    """
    if total <= max_visible:
        return list(range(1, total + 1))

    pages: List[Union[int, str]] = [1]
    if current > 3:
        pages.append(ELLIPSIS)
    for p in range(max(2, current - 1), min(total - 1, current + 1) + 1):
        if p not in pages:
            pages.append(p)
    if current < total - 2:
        pages.append(ELLIPSIS)
    if total not in pages:
        pages.append(total)
    return pages
