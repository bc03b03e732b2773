"""
Offset pagination shared by all list operations.
"""
from typing import Any, List, NamedTuple, Optional

from sqlalchemy.orm import Query

from approvalflow.api.core.config import settings
from approvalflow.api.core.errors import ValidationError


class PageResult(NamedTuple):
    items: List[Any]
    total: int
    page: int
    limit: int


def normalize_page(page: int = 1, page_size: Optional[int] = None):
    """Return (page, limit); page_size is capped at MAX_PAGE_SIZE."""
    if page < 1:
        raise ValidationError.for_field("page", "page must be >= 1")
    limit = page_size or settings.DEFAULT_PAGE_SIZE
    if limit < 1:
        raise ValidationError.for_field("limit", "limit must be >= 1")
    return page, min(limit, settings.MAX_PAGE_SIZE)


def paginate(query: Query, page: int = 1, page_size: Optional[int] = None) -> PageResult:
    """Run an ordered query for one page plus its unpaginated total."""
    page, limit = normalize_page(page, page_size)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return PageResult(items=items, total=total, page=page, limit=limit)
