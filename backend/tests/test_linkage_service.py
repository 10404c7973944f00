"""
Tests for managed-account persistence: the atomic upsert, insert-if-absent, and ownership cascades.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ads_manager.models import Campaign, ManagedAccount, User
from ads_manager.services.google_ads import AdsAccount
from ads_manager.services.google_oauth import GoogleTokens
from ads_manager.services.linkage_service import (
    LinkTokens,
    insert_managed_account_if_absent,
    remove_identity_link,
    upsert_managed_account,
)
from ads_manager.utils import utcnow

pytestmark = pytest.mark.anyio


async def _make_user(db, email="owner@example.com") -> User:
    user = User(email=email, name="Owner")
    db.add(user)
    await db.flush()
    return user


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


def test_link_tokens_from_google_computes_expiry():
    before = utcnow()
    tokens = LinkTokens.from_google(GoogleTokens(access_token="a", refresh_token="r", expires_in=3600))
    assert tokens.access_token == "a"
    assert tokens.refresh_token == "r"
    assert before + timedelta(seconds=3590) <= tokens.expires_at <= before + timedelta(seconds=3610)


def test_link_tokens_without_expiry():
    tokens = LinkTokens.from_google(GoogleTokens(access_token="a"))
    assert tokens.expires_at is None
    assert tokens.refresh_token is None


async def test_upsert_creates_then_updates_single_row(db):
    user = await _make_user(db)
    details = AdsAccount(customer_id="111", descriptive_name="Shop", currency_code="EUR", time_zone="Europe/Paris")

    first = await upsert_managed_account(
        db, user.id, "111", "owner@example.com", LinkTokens("access-1", "refresh-1"), details,
    )
    second = await upsert_managed_account(
        db, user.id, "111", "owner@example.com", LinkTokens("access-2", "refresh-2"),
        AdsAccount(customer_id="111", descriptive_name="Shop Renamed"),
    )

    assert second.id == first.id
    assert await _count(db, ManagedAccount) == 1
    assert second.access_token == "access-2"
    assert second.refresh_token == "refresh-2"
    assert second.ads_account_id == "111"
    assert second.descriptive_name == "Shop Renamed"


async def test_upsert_keeps_refresh_token_when_google_sends_none(db):
    user = await _make_user(db)
    await upsert_managed_account(db, user.id, "111", "owner@example.com", LinkTokens("access-1", "refresh-1"))
    account = await upsert_managed_account(db, user.id, "111", "owner@example.com", LinkTokens("access-2", None))

    assert account.access_token == "access-2"
    assert account.refresh_token == "refresh-1"


async def test_upsert_without_details_keeps_stored_details(db):
    user = await _make_user(db)
    await upsert_managed_account(
        db, user.id, "111", "owner@example.com", LinkTokens("a"), AdsAccount(customer_id="111", descriptive_name="Shop"),
    )
    account = await upsert_managed_account(db, user.id, "111", "owner@example.com", LinkTokens("b"))

    assert account.descriptive_name == "Shop"
    assert account.ads_account_id == "111"


async def test_same_google_account_can_be_linked_by_two_users(db):
    alice = await _make_user(db, "alice@example.com")
    bob = await _make_user(db, "bob@example.com")

    a = await upsert_managed_account(db, alice.id, "111", "shared@example.com", LinkTokens("a"))
    b = await upsert_managed_account(db, bob.id, "111", "shared@example.com", LinkTokens("b"))

    assert a.id != b.id
    assert await _count(db, ManagedAccount) == 2


async def test_insert_if_absent_returns_none_on_duplicate(db):
    user = await _make_user(db)
    created = await insert_managed_account_if_absent(
        db, user.id, "222", "owner@example.com", LinkTokens("access-1", "refresh-1"),
    )
    duplicate = await insert_managed_account_if_absent(
        db, user.id, "222", "owner@example.com", LinkTokens("access-2", "refresh-2"),
    )

    assert created is not None
    assert duplicate is None
    assert await _count(db, ManagedAccount) == 1
    stored = (await db.execute(select(ManagedAccount.access_token))).scalar_one()
    assert stored == "access-1"


async def test_deleting_user_cascades_to_accounts_and_campaigns(db):
    user = await _make_user(db)
    account = await upsert_managed_account(db, user.id, "111", "owner@example.com", LinkTokens("a"))
    db.add(Campaign(managed_account_id=account.id, campaign_id="9001", name="C", budget=Decimal("5.00")))
    await db.commit()

    await db.delete(user)
    await db.commit()

    assert await _count(db, ManagedAccount) == 0
    assert await _count(db, Campaign) == 0


async def test_deleting_account_cascades_to_campaigns_only(db):
    user = await _make_user(db)
    account = await upsert_managed_account(db, user.id, "111", "owner@example.com", LinkTokens("a"))
    db.add(Campaign(managed_account_id=account.id, campaign_id="9001", name="C"))
    await db.commit()

    await db.delete(account)
    await db.commit()

    assert await _count(db, Campaign) == 0
    assert await _count(db, User) == 1


async def test_remove_identity_link_keeps_ads_links(db):
    user = await _make_user(db)
    await upsert_managed_account(db, user.id, "google-sub-1", "owner@example.com", LinkTokens("a"))
    await upsert_managed_account(
        db, user.id, "111", "owner@example.com", LinkTokens("a"), AdsAccount(customer_id="111"),
    )

    assert await remove_identity_link(db, user.id, "google-sub-1") == 1
    assert await remove_identity_link(db, user.id, "111") == 0
    remaining = (await db.execute(select(ManagedAccount.managed_google_id))).scalars().all()
    assert remaining == ["111"]
