"""
Authentication — JWT bearer tokens issued by /auth/login, /auth/register and the Google login callback.

Include: Authorization: Bearer <jwt>
"""

import logging
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ads_manager.database import get_db
from ads_manager.models import ManagedAccount, User
from ads_manager.services.auth_service import decode_access_token

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Require a valid JWT and return the User from DB."""
    if not credentials:
        raise HTTPException(status_code=401, detail="No token provided")

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_owned_managed_account(db: AsyncSession, account_id: int, user: User) -> ManagedAccount:
    """The user's managed account. Another user's account is reported as missing, not forbidden."""
    result = await db.execute(
        select(ManagedAccount).where(
            ManagedAccount.id == account_id,
            ManagedAccount.user_id == user.id,
        )
    )
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=404, detail="Managed account not found")
    return account
