"""Summary history: create, list with cursor, read, delete."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.exceptions import AccessDeniedError, NotFoundError
from digestai.core.logging import logger
from digestai.models.summary import Summary

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass
class SummaryPage:
    items: List[Summary] = field(default_factory=list)
    next_cursor: Optional[datetime] = None
    has_more: bool = False


async def create_summary(db: AsyncSession, user_id: uuid.UUID, **fields) -> Summary:
    """Insert a summary row. Committed together with the usage increment."""
    summary = Summary(user_id=user_id, **fields)
    db.add(summary)
    await db.flush()
    await db.refresh(summary)
    logger.info(f"Summary saved: {summary.id} ({summary.source_type}) for user {user_id}")
    return summary


async def get_user_summaries(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = DEFAULT_PAGE_SIZE,
    cursor: Optional[datetime] = None,
) -> SummaryPage:
    """Newest first; ``cursor`` is the created_at of the last item already seen."""
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    query = select(Summary).where(Summary.user_id == user_id)
    if cursor is not None:
        query = query.where(Summary.created_at < cursor)
    query = query.order_by(Summary.created_at.desc()).limit(limit + 1)

    result = await db.execute(query)
    rows = list(result.scalars().all())

    has_more = len(rows) > limit
    items = rows[:limit]
    return SummaryPage(
        items=items,
        next_cursor=items[-1].created_at if has_more and items else None,
        has_more=has_more,
    )


async def get_summary_with_access(
    db: AsyncSession, summary_id: uuid.UUID, user_id: uuid.UUID
) -> Summary:
    result = await db.execute(select(Summary).where(Summary.id == summary_id))
    summary = result.scalar_one_or_none()
    if not summary:
        raise NotFoundError("Summary not found")
    if summary.user_id != user_id:
        raise AccessDeniedError("You do not have access to this summary")
    return summary


async def delete_summary(db: AsyncSession, summary_id: uuid.UUID, user_id: uuid.UUID) -> None:
    summary = await get_summary_with_access(db, summary_id, user_id)
    await db.delete(summary)
    await db.flush()
    logger.info(f"Summary deleted: {summary_id} by user {user_id}")


async def get_user_summary_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(Summary).where(Summary.user_id == user_id)
    )
    return result.scalar() or 0
