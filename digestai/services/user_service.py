"""Local user records keyed by the identity provider's subject."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.exceptions import InvalidInputError, NotFoundError
from digestai.core.logging import logger
from digestai.models.user import User

USER_TIERS = ("free", "pro", "enterprise")


async def get_or_create_user(
    db: AsyncSession, auth_id: str, email: str, name: Optional[str] = None
) -> User:
    """Return the user for ``auth_id``, creating it on first sight."""
    result = await db.execute(select(User).where(User.auth_id == auth_id))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(auth_id=auth_id, email=email, name=name, tier="free")
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info(f"New user created: {email} ({auth_id})")
    return user


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


async def update_user(
    db: AsyncSession, user: User, name: Optional[str] = None, tier: Optional[str] = None
) -> User:
    if tier is not None and tier not in USER_TIERS:
        raise InvalidInputError(f"Invalid tier '{tier}'. Allowed: {', '.join(USER_TIERS)}")

    if name is not None:
        user.name = name
    if tier is not None:
        user.tier = tier
    await db.flush()
    await db.refresh(user)
    return user
