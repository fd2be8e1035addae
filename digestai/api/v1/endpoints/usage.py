"""Monthly usage endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.database import get_db
from digestai.dependencies import get_current_user
from digestai.models.user import User
from digestai.schemas import CanSummarizeResponse, UsageResponse
from digestai.services import usage_service

router = APIRouter()


@router.get("/", response_model=UsageResponse)
async def get_usage(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current month's usage with the tier limit (`null` limit means unlimited)."""
    usage = await usage_service.get_usage_with_limits(db, current_user)
    return UsageResponse(**asdict(usage))


@router.get("/can-summarize", response_model=CanSummarizeResponse)
async def can_summarize(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    check = await usage_service.can_summarize(db, current_user)
    return CanSummarizeResponse(allowed=check.allowed, reason=check.reason)
