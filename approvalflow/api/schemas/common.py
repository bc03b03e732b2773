"""
Shared schema pieces: camelCase base model and the paginated envelope.
"""
import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, emits camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class Page(CamelModel, Generic[T]):
    items: List[T]
    pagination: Pagination

    @classmethod
    def from_result(cls, result):
        """Build the envelope from a services.pagination.PageResult."""
        return cls(
            items=result.items,
            pagination=Pagination.build(result.page, result.limit, result.total),
        )
