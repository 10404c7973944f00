"""
Managed Accounts Router — Link Google Ads accounts to the current user.

Linking flow:
  GET /add        → consent URL (state carries the user id)
  GET /callback   → code exchange → id-token check → list Ads accounts → upsert one link per account
  POST /link      → link one more customer reachable with an already-linked account's token
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ads_manager.auth import get_current_user, get_owned_managed_account
from ads_manager.config import Settings, get_settings
from ads_manager.crypto import decrypt_token
from ads_manager.database import get_db
from ads_manager.models import ManagedAccount, User
from ads_manager.routers.campaigns import CampaignResponse, campaign_to_response
from ads_manager.services.auth_service import STATE_PURPOSE_LINK, create_oauth_state, decode_oauth_state
from ads_manager.services.google_ads import (
    AdsAccount,
    AdsClientFactory,
    GoogleAdsError,
    get_ads_client_factory,
)
from ads_manager.services.google_oauth import GoogleOAuthClient, GoogleOAuthError, get_google_oauth
from ads_manager.services.linkage_service import (
    LinkTokens,
    insert_managed_account_if_absent,
    remove_identity_link,
    upsert_managed_account,
)
from ads_manager.services.token_service import get_ads_client_with_fresh_token
from ads_manager.utils import normalize_customer_id, safe_error_detail

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Schemas ──────────────────────────────────────────────────────────

class ManagedAccountResponse(BaseModel):
    id: int
    managed_google_id: str
    managed_email: str
    ads_account_id: Optional[str]
    descriptive_name: Optional[str]
    currency_code: Optional[str]
    time_zone: Optional[str]
    has_refresh_token: bool
    created_at: datetime
    updated_at: datetime
    campaigns: list[CampaignResponse] = []


class AuthUrlResponse(BaseModel):
    auth_url: str


class LinkRequest(BaseModel):
    managed_account_id: int
    customer_id: str = Field(min_length=1, max_length=32)


def _account_to_response(account: ManagedAccount, include_campaigns: bool = False) -> ManagedAccountResponse:
    return ManagedAccountResponse(
        id=account.id,
        managed_google_id=account.managed_google_id,
        managed_email=account.managed_email,
        ads_account_id=account.ads_account_id,
        descriptive_name=account.descriptive_name,
        currency_code=account.currency_code,
        time_zone=account.time_zone,
        has_refresh_token=bool(account.refresh_token),
        created_at=account.created_at,
        updated_at=account.updated_at,
        campaigns=[campaign_to_response(c) for c in account.campaigns] if include_campaigns else [],
    )


# ── Endpoints ────────────────────────────────────────────────────────

@router.get("", response_model=list[ManagedAccountResponse])
async def list_managed_accounts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ManagedAccount)
        .where(ManagedAccount.user_id == user.id)
        .options(selectinload(ManagedAccount.campaigns))
        .order_by(ManagedAccount.created_at, ManagedAccount.id)
    )
    return [_account_to_response(a, include_campaigns=True) for a in result.scalars().all()]


@router.get("/add", response_model=AuthUrlResponse)
async def start_linking(
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    settings: Settings = Depends(get_settings),
):
    """Consent URL for linking. The frontend navigates the browser there."""
    state = create_oauth_state(STATE_PURPOSE_LINK, user_id=user.id)
    return AuthUrlResponse(auth_url=oauth.build_auth_url(settings.link_callback_url, state))


@router.get("/callback")
async def linking_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    create_ads_client: AdsClientFactory = Depends(get_ads_client_factory),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """
    Google redirects here after consent. Google doesn't forward our Bearer token,
    so the user comes from the signed state created by /add.
    """
    if not code:
        raise HTTPException(status_code=400, detail="Invalid authorization code")
    state_payload = decode_oauth_state(state, STATE_PURPOSE_LINK)
    if not state_payload or not state_payload.get("uid"):
        raise HTTPException(status_code=400, detail="Invalid or expired state")

    user = await db.get(User, int(state_payload["uid"]))
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired state")

    try:
        tokens = await oauth.exchange_code(code, settings.link_callback_url)
    except GoogleOAuthError:
        raise HTTPException(status_code=400, detail="Invalid tokens received")
    if not tokens.id_token:
        raise HTTPException(status_code=400, detail="Invalid tokens received")

    info = await oauth.verify_id_token(tokens.id_token)
    if not info:
        raise HTTPException(status_code=400, detail="Could not get user information")

    try:
        ads_accounts = await create_ads_client(tokens.access_token).list_accessible_accounts()
    except GoogleAdsError as e:
        logger.warning(f"Could not list Google Ads accounts for user {user.id}: {e}")
        ads_accounts = []

    link_tokens = LinkTokens.from_google(tokens)
    linked: list[ManagedAccount] = []
    if ads_accounts:
        for ads_account in ads_accounts:
            linked.append(await upsert_managed_account(
                db,
                user_id=user.id,
                managed_google_id=ads_account.customer_id,
                managed_email=info.email,
                tokens=link_tokens,
                account=ads_account,
            ))
        await remove_identity_link(db, user.id, info.sub)
    else:
        # No Ads account yet: keep the Google identity so the user can link one later
        linked.append(await upsert_managed_account(
            db,
            user_id=user.id,
            managed_google_id=info.sub,
            managed_email=info.email,
            tokens=link_tokens,
        ))

    logger.info(f"User {user.id} linked {len(linked)} managed account(s) via {info.email}")
    return RedirectResponse(
        f"{settings.frontend_url.rstrip('/')}/dashboard/accounts/{linked[0].id}",
        status_code=302,
    )


@router.get("/{account_id}/accessible", response_model=list[AdsAccount])
async def list_accessible_accounts(
    account_id: int,
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    create_ads_client: AdsClientFactory = Depends(get_ads_client_factory),
    db: AsyncSession = Depends(get_db),
):
    """Google Ads accounts reachable with this managed account's stored token."""
    account = await get_owned_managed_account(db, account_id, user)
    client = await get_ads_client_with_fresh_token(account, oauth, create_ads_client, db)
    try:
        return await client.list_accessible_accounts()
    except GoogleAdsError as e:
        raise HTTPException(status_code=500, detail=safe_error_detail(e, "Error listing Google Ads accounts"))


@router.post("/link", response_model=ManagedAccountResponse, status_code=201)
async def link_account(
    payload: LinkRequest,
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    create_ads_client: AdsClientFactory = Depends(get_ads_client_factory),
    db: AsyncSession = Depends(get_db),
):
    """Link a customer reachable with an already-linked account's token. Rejects a customer already linked."""
    source = await get_owned_managed_account(db, payload.managed_account_id, user)
    customer_id = normalize_customer_id(payload.customer_id)
    if not customer_id.isdigit():
        raise HTTPException(status_code=400, detail="Invalid Google Ads customer id")

    client = await get_ads_client_with_fresh_token(source, oauth, create_ads_client, db)
    try:
        if not await client.check_account_access(customer_id):
            raise HTTPException(status_code=403, detail="No access to this Google Ads account")
        details = await client.get_customer(customer_id)
    except GoogleAdsError as e:
        raise HTTPException(status_code=500, detail=safe_error_detail(e, "Error checking Google Ads account"))

    account = await insert_managed_account_if_absent(
        db,
        user_id=user.id,
        managed_google_id=customer_id,
        managed_email=source.managed_email,
        tokens=LinkTokens(
            access_token=decrypt_token(source.access_token),
            refresh_token=decrypt_token(source.refresh_token),
            expires_at=source.token_expires_at,
        ),
        account=details or AdsAccount(customer_id=customer_id),
    )
    if account is None:
        raise HTTPException(status_code=400, detail="This Google Ads account is already connected")
    return _account_to_response(account)


@router.delete("/{account_id}")
async def delete_managed_account(
    account_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    account = await get_owned_managed_account(db, account_id, user)
    await db.delete(account)
    await db.flush()
    logger.info(f"User {user.id} removed managed account {account_id}")
    return {"message": "Managed account deleted successfully"}
