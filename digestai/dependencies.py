"""JWT authentication against tokens issued by the identity provider."""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from digestai.core.config import settings
from digestai.core.database import get_db
from digestai.models.user import User
from digestai.services.user_service import get_or_create_user


# ─── JWT tokens ──────────────────────────────────────────────────────────────

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    auth_id: str,
    email: str,
    name: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a token shaped like the identity provider's (used by tests and local dev)."""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
    payload = {
        "sub": auth_id,
        "email": email,
        "exp": expire,
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ─── Auth dependency ─────────────────────────────────────────────────────────

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the bearer token and return the matching user, creating it on first sight."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    try:
        payload = jwt.decode(
            credentials.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise credentials_exception

    auth_id: Optional[str] = payload.get("sub")
    email: Optional[str] = payload.get("email")
    if not auth_id or not email:
        raise credentials_exception

    return await get_or_create_user(db, auth_id=auth_id, email=email, name=payload.get("name"))
