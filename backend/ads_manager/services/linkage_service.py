"""
Linkage Service — ties a local user to a Google Ads account.

Both writes are a single INSERT … ON CONFLICT against the
(user_id, managed_google_id) unique constraint, so concurrent duplicate
requests can't produce two rows or a unique-violation error.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ads_manager.crypto import encrypt_token
from ads_manager.models import ManagedAccount
from ads_manager.services.google_ads import AdsAccount
from ads_manager.services.google_oauth import GoogleTokens
from ads_manager.utils import utcnow

logger = logging.getLogger(__name__)

_CONFLICT_COLUMNS = ["user_id", "managed_google_id"]


@dataclass
class LinkTokens:
    """Plaintext delegated tokens; encrypted on write."""
    access_token: Optional[str]
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_google(cls, tokens: GoogleTokens) -> "LinkTokens":
        expires_at = None
        if tokens.expires_in:
            expires_at = utcnow() + timedelta(seconds=int(tokens.expires_in))
        return cls(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=expires_at,
        )


def _insert_for(db: AsyncSession):
    dialect = db.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Account linking is not supported on the {dialect} dialect")


def _row_values(
    user_id: int,
    managed_google_id: str,
    managed_email: str,
    tokens: LinkTokens,
    account: Optional[AdsAccount],
) -> dict:
    now = utcnow()
    values = {
        "user_id": user_id,
        "managed_google_id": managed_google_id,
        "managed_email": managed_email,
        "access_token": encrypt_token(tokens.access_token),
        "refresh_token": encrypt_token(tokens.refresh_token),
        "token_expires_at": tokens.expires_at,
        "created_at": now,
        "updated_at": now,
    }
    if account is not None:
        values.update(
            ads_account_id=account.customer_id,
            descriptive_name=account.descriptive_name or None,
            currency_code=account.currency_code or None,
            time_zone=account.time_zone or None,
        )
    return values


async def upsert_managed_account(
    db: AsyncSession,
    user_id: int,
    managed_google_id: str,
    managed_email: str,
    tokens: LinkTokens,
    account: Optional[AdsAccount] = None,
) -> ManagedAccount:
    """
    Insert the link, or refresh tokens and account details on the existing one.
    A refresh token is only replaced when Google sent a new one.
    """
    values = _row_values(user_id, managed_google_id, managed_email, tokens, account)
    insert = _insert_for(db)
    stmt = insert(ManagedAccount).values(**values)

    update_cols = {
        "managed_email": stmt.excluded.managed_email,
        "access_token": stmt.excluded.access_token,
        "token_expires_at": stmt.excluded.token_expires_at,
        "updated_at": stmt.excluded.updated_at,
    }
    if tokens.refresh_token:
        update_cols["refresh_token"] = stmt.excluded.refresh_token
    if account is not None:
        for col in ("ads_account_id", "descriptive_name", "currency_code", "time_zone"):
            update_cols[col] = getattr(stmt.excluded, col)

    stmt = stmt.on_conflict_do_update(
        index_elements=_CONFLICT_COLUMNS,
        set_=update_cols,
    ).returning(ManagedAccount.id)

    result = await db.execute(stmt)
    account_id = result.scalar_one()
    logger.info(f"Upserted managed account {account_id} ({managed_google_id}) for user {user_id}")
    return await db.get(ManagedAccount, account_id, populate_existing=True)


async def insert_managed_account_if_absent(
    db: AsyncSession,
    user_id: int,
    managed_google_id: str,
    managed_email: str,
    tokens: LinkTokens,
    account: Optional[AdsAccount] = None,
) -> Optional[ManagedAccount]:
    """Insert a new link. Returns None, writing nothing, if the user already has this account."""
    values = _row_values(user_id, managed_google_id, managed_email, tokens, account)
    insert = _insert_for(db)
    stmt = (
        insert(ManagedAccount)
        .values(**values)
        .on_conflict_do_nothing(index_elements=_CONFLICT_COLUMNS)
        .returning(ManagedAccount.id)
    )
    result = await db.execute(stmt)
    account_id = result.scalar_one_or_none()
    if account_id is None:
        logger.info(f"User {user_id} already manages {managed_google_id}")
        return None
    logger.info(f"Linked managed account {account_id} ({managed_google_id}) for user {user_id}")
    return await db.get(ManagedAccount, account_id)


async def remove_identity_link(db: AsyncSession, user_id: int, managed_google_id: str) -> int:
    """
    Drop the identity-only link (no Google Ads account) stored when a consent
    reached no customers. Called once real customers have been linked.
    """
    result = await db.execute(
        delete(ManagedAccount).where(
            ManagedAccount.user_id == user_id,
            ManagedAccount.managed_google_id == managed_google_id,
            ManagedAccount.ads_account_id.is_(None),
        )
    )
    if result.rowcount:
        logger.info(f"Removed identity-only link {managed_google_id} for user {user_id}")
    return result.rowcount
