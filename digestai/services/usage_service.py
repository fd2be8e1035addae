"""Monthly usage metering and the per-tier quota gate."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.config import settings
from digestai.core.logging import logger
from digestai.models.usage import Usage
from digestai.models.user import User


@dataclass
class UsageSnapshot:
    month: str
    summary_count: int
    tokens_used: int


@dataclass
class UsageWithLimits(UsageSnapshot):
    tier: str
    limit: Optional[int]  # None means unlimited
    remaining: Optional[int]


@dataclass
class SummarizeCheck:
    allowed: bool
    reason: Optional[str] = None


def current_month(now: Optional[datetime] = None) -> str:
    """Billing month key, ``YYYY-MM`` in UTC."""
    return (now or datetime.utcnow()).strftime("%Y-%m")


def get_tier_limit(tier: str) -> Optional[int]:
    limits = {
        "free": settings.FREE_TIER_LIMIT,
        "pro": settings.PRO_TIER_LIMIT,
        "enterprise": settings.ENTERPRISE_TIER_LIMIT,
    }
    return limits.get(tier, settings.FREE_TIER_LIMIT)


async def _get_usage_row(db: AsyncSession, user_id: uuid.UUID, month: str) -> Optional[Usage]:
    result = await db.execute(
        select(Usage)
        .where(Usage.user_id == user_id, Usage.month == month)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_usage(db: AsyncSession, user_id: uuid.UUID) -> UsageSnapshot:
    month = current_month()
    row = await _get_usage_row(db, user_id, month)
    if not row:
        return UsageSnapshot(month=month, summary_count=0, tokens_used=0)
    return UsageSnapshot(month=month, summary_count=row.summary_count, tokens_used=row.tokens_used)


async def get_usage_with_limits(db: AsyncSession, user: User) -> UsageWithLimits:
    usage = await get_usage(db, user.id)
    limit = get_tier_limit(user.tier)
    remaining = None if limit is None else max(0, limit - usage.summary_count)
    return UsageWithLimits(
        month=usage.month,
        summary_count=usage.summary_count,
        tokens_used=usage.tokens_used,
        tier=user.tier,
        limit=limit,
        remaining=remaining,
    )


async def can_summarize(db: AsyncSession, user: User) -> SummarizeCheck:
    usage = await get_usage_with_limits(db, user)
    if usage.limit is not None and usage.summary_count >= usage.limit:
        return SummarizeCheck(
            allowed=False,
            reason=f"Monthly limit reached ({usage.limit} summaries for {user.tier} tier)",
        )
    return SummarizeCheck(allowed=True)


async def increment_usage(db: AsyncSession, user_id: uuid.UUID, tokens: int = 0) -> Usage:
    """Count one summary and its tokens against the current month.

    One upsert, atomic under concurrent requests including the first of the
    month. Runs in the caller's transaction, which decides whether it sticks.
    """
    month = current_month()
    insert = sqlite_insert if db.bind.dialect.name == "sqlite" else pg_insert
    stmt = insert(Usage).values(
        id=uuid.uuid4(),
        user_id=user_id,
        month=month,
        summary_count=1,
        tokens_used=tokens or 0,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Usage.user_id, Usage.month],
        set_={
            "summary_count": Usage.summary_count + 1,
            "tokens_used": Usage.tokens_used + stmt.excluded.tokens_used,
        },
    )
    await db.execute(stmt)
    return await _get_usage_row(db, user_id, month)


async def reset_monthly_usage(db: AsyncSession, user_id: uuid.UUID) -> None:
    month = current_month()
    result = await db.execute(
        update(Usage)
        .where(Usage.user_id == user_id, Usage.month == month)
        .values(summary_count=0, tokens_used=0)
    )
    if result.rowcount:
        logger.info(f"Usage reset for user {user_id} ({month})")
