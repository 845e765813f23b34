"""API dependencies."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.database import get_db_session
from skillpath.schemas.common import PageParams


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency (one transaction per request)."""
    async with get_db_session() as session:
        yield session


def get_page_params(
    page: Annotated[int | None, Query()] = None,
    limit: Annotated[int | None, Query()] = None,
) -> PageParams:
    """Out-of-range values are clamped, not rejected."""
    return PageParams.clamp(page, limit)


# Database dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]

# Pagination dependency
Pagination = Annotated[PageParams, Depends(get_page_params)]
