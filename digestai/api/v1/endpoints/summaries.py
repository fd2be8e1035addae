"""Summary history endpoints (list, count, get, delete)."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.database import get_db
from digestai.dependencies import get_current_user
from digestai.models.user import User
from digestai.schemas import SummaryCountResponse, SummaryListResponse, SummaryResponse
from digestai.services import summary_service

router = APIRouter()


@router.get("/", response_model=SummaryListResponse)
async def list_summaries(
    limit: int = Query(10, ge=1, le=100),
    cursor: Optional[datetime] = Query(None, description="created_at of the last item seen"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the current user's summaries, newest first."""
    page = await summary_service.get_user_summaries(db, current_user.id, limit=limit, cursor=cursor)
    return SummaryListResponse(
        items=page.items,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.get("/count", response_model=SummaryCountResponse)
async def count_summaries(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await summary_service.get_user_summary_count(db, current_user.id)
    return SummaryCountResponse(count=count)


@router.get("/{summary_id}", response_model=SummaryResponse)
async def get_summary(
    summary_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await summary_service.get_summary_with_access(db, summary_id, current_user.id)


@router.delete("/{summary_id}")
async def delete_summary(
    summary_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete one of the current user's summaries."""
    await summary_service.delete_summary(db, summary_id, current_user.id)
    return {"success": True, "message": "Summary deleted"}
