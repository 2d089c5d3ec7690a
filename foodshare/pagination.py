import math
from dataclasses import dataclass, field
from typing import Any, List


def total_pages(total_count, per_page):
    return math.ceil(total_count / per_page) if total_count else 0


def page_bounds(page, per_page):
    """Offset and limit for a 1-based page number."""
    return (page - 1) * per_page, per_page


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    page: int = 1
    per_page: int = 10
    total_count: int = 0

    @property
    def total_pages(self):
        return total_pages(self.total_count, self.per_page)

    @property
    def has_prev(self):
        return self.page > 1

    @property
    def has_next(self):
        return self.page < self.total_pages


def paginate_query(query, page, per_page):
    """Count, then fetch one slice of an ordered SQLAlchemy query."""
    count = query.order_by(None).count()
    offset, limit = page_bounds(page, per_page)
    items = query.offset(offset).limit(limit).all()
    return Page(items=items, page=page, per_page=per_page, total_count=count)


def paginate_list(items, page, per_page):
    """Slice an already filtered and sorted list."""
    offset, limit = page_bounds(page, per_page)
    return Page(items=items[offset:offset + limit], page=page, per_page=per_page,
                total_count=len(items))
