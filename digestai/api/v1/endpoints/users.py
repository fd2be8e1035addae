"""Current-user endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.database import get_db
from digestai.core.logging import logger
from digestai.dependencies import get_current_user
from digestai.models.user import User
from digestai.schemas import UserResponse, UserUpdate
from digestai.services.user_service import update_user

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user profile (requires token)."""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update the current user's profile. Unknown fields, including tier, are rejected."""
    user = await update_user(db, current_user, name=data.name)
    logger.info(f"User updated: {user.email}")
    return user
