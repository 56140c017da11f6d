"""
Offset pagination for list endpoints.
"""
from __future__ import annotations

import math
from typing import Any, List, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from store_api.config import get_settings


def clamp(page: int | None, limit: int | None) -> Tuple[int, int]:
    """``page`` is at least 1; ``limit`` is between 1 and the configured cap."""
    settings = get_settings()
    page = max(page or 1, 1)
    limit = settings.default_page_limit if limit is None else limit
    limit = min(max(limit, 1), settings.max_page_limit)
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit),
    }


async def paginate(
    session: AsyncSession,
    stmt: Select,
    page: int,
    limit: int,
) -> Tuple[List[Any], dict[str, int]]:
    """
    Run *stmt* for one page and count the unpaged result.
    Returns (rows, pagination_meta). Rows are whatever *stmt* selects.
    """
    total = (
        await session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        )
    ).scalar_one()
    rows = (
        await session.execute(stmt.offset((page - 1) * limit).limit(limit))
    ).all()
    return list(rows), pagination_meta(page, limit, total)
