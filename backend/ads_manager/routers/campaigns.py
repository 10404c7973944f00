"""
Campaigns Router — Create, list and delete Google Ads campaigns of a managed account.
Creates and deletes go to Google Ads first; the local row mirrors what succeeded there.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ads_manager.auth import get_current_user, get_owned_managed_account
from ads_manager.database import get_db
from ads_manager.models import Campaign, User
from ads_manager.services.google_ads import AdsClientFactory, GoogleAdsError, get_ads_client_factory
from ads_manager.services.google_oauth import GoogleOAuthClient, get_google_oauth
from ads_manager.services.token_service import get_ads_client_with_fresh_token
from ads_manager.utils import safe_error_detail

logger = logging.getLogger(__name__)
router = APIRouter()


# ── Schemas ──────────────────────────────────────────────────────────

class CampaignCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    status: Literal["ENABLED", "PAUSED"] = "PAUSED"
    budget: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "CampaignCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CampaignResponse(BaseModel):
    id: int
    managed_account_id: int
    campaign_id: str
    name: str
    status: Optional[str]
    budget: Optional[float]
    start_date: Optional[date]
    end_date: Optional[date]
    created_at: datetime


def campaign_to_response(c: Campaign) -> CampaignResponse:
    return CampaignResponse(
        id=c.id,
        managed_account_id=c.managed_account_id,
        campaign_id=c.campaign_id,
        name=c.name,
        status=c.status,
        budget=float(c.budget) if c.budget is not None else None,
        start_date=c.start_date,
        end_date=c.end_date,
        created_at=c.created_at,
    )


# ── Endpoints ────────────────────────────────────────────────────────

@router.get("/{managed_account_id}", response_model=list[CampaignResponse])
async def list_campaigns(
    managed_account_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    account = await get_owned_managed_account(db, managed_account_id, user)
    result = await db.execute(
        select(Campaign)
        .where(Campaign.managed_account_id == account.id)
        .order_by(Campaign.created_at.desc(), Campaign.id.desc())
    )
    return [campaign_to_response(c) for c in result.scalars().all()]


@router.post("/{managed_account_id}", response_model=CampaignResponse, status_code=201)
async def create_campaign(
    managed_account_id: int,
    payload: CampaignCreate,
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    create_ads_client: AdsClientFactory = Depends(get_ads_client_factory),
    db: AsyncSession = Depends(get_db),
):
    account = await get_owned_managed_account(db, managed_account_id, user)
    if not account.ads_account_id:
        raise HTTPException(status_code=400, detail="Managed account has no Google Ads account")

    client = await get_ads_client_with_fresh_token(account, oauth, create_ads_client, db)
    try:
        external_id = await client.create_campaign(
            customer_id=account.ads_account_id,
            name=payload.name,
            status=payload.status,
            budget=payload.budget,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except GoogleAdsError as e:
        raise HTTPException(status_code=500, detail=safe_error_detail(e, "Error creating campaign"))

    campaign = Campaign(
        managed_account_id=account.id,
        campaign_id=external_id,
        name=payload.name,
        status=payload.status,
        budget=payload.budget,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    db.add(campaign)
    await db.flush()
    await db.refresh(campaign)
    logger.info(f"Saved campaign {external_id} for managed account {account.id}")
    return campaign_to_response(campaign)


@router.delete("/{managed_account_id}/{campaign_id}", status_code=204)
async def delete_campaign(
    managed_account_id: int,
    campaign_id: str,
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    create_ads_client: AdsClientFactory = Depends(get_ads_client_factory),
    db: AsyncSession = Depends(get_db),
):
    account = await get_owned_managed_account(db, managed_account_id, user)
    result = await db.execute(
        select(Campaign).where(
            Campaign.managed_account_id == account.id,
            Campaign.campaign_id == campaign_id,
        )
    )
    campaign = result.scalar_one_or_none()
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")

    if account.ads_account_id:
        client = await get_ads_client_with_fresh_token(account, oauth, create_ads_client, db)
        try:
            await client.delete_campaign(account.ads_account_id, campaign.campaign_id)
        except GoogleAdsError as e:
            raise HTTPException(status_code=500, detail=safe_error_detail(e, "Error deleting campaign"))

    await db.delete(campaign)
    await db.flush()
    return Response(status_code=204)
