"""Pagination schemas shared by all list endpoints."""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

from skillpath.core.config import get_settings

T = TypeVar("T")


class PageParams(BaseModel):
    """1-based page request, clamped to sane bounds."""

    page: int
    limit: int

    @classmethod
    def clamp(cls, page: int | None = None, limit: int | None = None) -> "PageParams":
        settings = get_settings()
        page = max(page or 1, 1)
        limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
        limit = min(max(limit, 1), settings.MAX_PAGE_SIZE)
        return cls(page=page, limit=limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Paginated(BaseModel, Generic[T]):
    data: list[T]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, data: list[T], total: int, params: PageParams) -> "Paginated[T]":
        return cls(
            data=data,
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=math.ceil(total / params.limit),
        )


class MessageResponse(BaseModel):
    message: str
