from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from recordquery.core.config import settings


@dataclass
class PaginationResult:
    data: list[Any] = field(default_factory=list)
    total_size: int = 0
    total_page: int = 0
    page_index: int = 0
    page_size: int = 0

    def to_dict(self, serialize=None) -> dict[str, Any]:
        rows = [serialize(row) for row in self.data] if serialize is not None else list(self.data)
        return {
            "data": rows,
            "totalSize": self.total_size,
            "totalPage": self.total_page,
            "pageIndex": self.page_index,
            "pageSize": self.page_size,
        }


def normalize_page(page_index: int | None, page_size: int | None) -> tuple[int, int]:
    """0-based index; negative index -> 0, non-positive size -> configured default."""
    index = int(page_index or 0)
    size = int(page_size or 0)
    if index < 0:
        index = 0
    if size <= 0:
        size = settings.FILTER_DEFAULT_PAGE_SIZE
    return index, size


def total_page_count(total_size: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return (total_size + page_size - 1) // page_size


def paginate(rows: Sequence[Any], page_index: int | None, page_size: int | None) -> PaginationResult:
    """Window of `rows` for one page; `data` is a slice of `rows` holding the same record objects."""
    index, size = normalize_page(page_index, page_size)
    total = len(rows)
    result = PaginationResult(
        total_size=total,
        total_page=total_page_count(total, size),
        page_index=index,
        page_size=size,
    )
    offset = index * size
    if offset >= total:
        return result
    result.data = rows[offset:min(offset + size, total)]
    return result
