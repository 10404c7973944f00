"""
Token Service — Automatic OAuth token refresh for managed Google Ads accounts.
Checks token expiry before Google Ads calls and refreshes if needed.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from ads_manager.crypto import decrypt_token, encrypt_token
from ads_manager.models import ManagedAccount
from ads_manager.services.google_ads import AdsClientFactory, GoogleAdsClient
from ads_manager.services.google_oauth import GoogleOAuthClient, GoogleOAuthError
from ads_manager.utils import utcnow

logger = logging.getLogger(__name__)

# Refresh 5 minutes before actual expiry
REFRESH_BUFFER = timedelta(minutes=5)


def _token_is_expired(account: ManagedAccount, now: datetime) -> bool:
    if not account.token_expires_at:
        # Expiry unknown: use the token as-is and let the API say otherwise
        return False
    return now >= account.token_expires_at - REFRESH_BUFFER


async def ensure_fresh_token(
    account: ManagedAccount,
    oauth: GoogleOAuthClient,
    db: AsyncSession,
) -> ManagedAccount:
    """
    Refresh the account's access token if it is about to expire and commit it.
    Failure leaves the old token in place.
    """
    if not account.refresh_token or not _token_is_expired(account, utcnow()):
        return account

    logger.info(f"Access token expired for managed account {account.id}, refreshing...")
    try:
        tokens = await oauth.refresh_access_token(decrypt_token(account.refresh_token))
    except GoogleOAuthError as e:
        logger.error(f"Token refresh failed for managed account {account.id}: {e}")
        return account

    now = utcnow()
    account.access_token = encrypt_token(tokens.access_token)
    account.token_expires_at = now + timedelta(seconds=tokens.expires_in or 3600)
    if tokens.refresh_token:
        account.refresh_token = encrypt_token(tokens.refresh_token)
    account.updated_at = now
    # Persist now; the request may still roll back if the Ads call fails
    await db.commit()
    logger.info(f"Token refreshed for managed account {account.id}, expires in {tokens.expires_in}s")
    return account


async def get_ads_client_with_fresh_token(
    account: ManagedAccount,
    oauth: GoogleOAuthClient,
    create_ads_client: AdsClientFactory,
    db: AsyncSession,
) -> GoogleAdsClient:
    """
    Google Ads client for a managed account with a guaranteed fresh access token.
    Use this instead of calling the factory directly.
    """
    account = await ensure_fresh_token(account, oauth, db)
    return create_ads_client(decrypt_token(account.access_token) or "")
