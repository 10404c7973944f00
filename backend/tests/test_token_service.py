"""
Tests for access-token refresh of managed accounts.
"""

from datetime import timedelta

import pytest

from ads_manager.models import ManagedAccount
from ads_manager.services.google_oauth import GoogleOAuthError
from ads_manager.services.token_service import REFRESH_BUFFER, _token_is_expired, ensure_fresh_token
from ads_manager.utils import utcnow

pytestmark = pytest.mark.anyio


def _account(expires_at=None, refresh_token="refresh-1") -> ManagedAccount:
    return ManagedAccount(
        id=1,
        user_id=1,
        managed_google_id="111",
        managed_email="o@example.com",
        access_token="old-access",
        refresh_token=refresh_token,
        token_expires_at=expires_at,
    )


class _RecordingSession:
    commits = 0

    async def commit(self):
        self.commits += 1


def test_token_within_buffer_counts_as_expired():
    now = utcnow()
    assert _token_is_expired(_account(now + REFRESH_BUFFER - timedelta(seconds=1)), now)
    assert not _token_is_expired(_account(now + REFRESH_BUFFER + timedelta(minutes=1)), now)
    assert not _token_is_expired(_account(None), now)


async def test_fresh_token_is_left_alone(fake_oauth):
    account = _account(utcnow() + timedelta(hours=1))
    db = _RecordingSession()
    await ensure_fresh_token(account, fake_oauth, db)
    assert account.access_token == "old-access"
    assert fake_oauth.refreshed == []
    assert db.commits == 0


async def test_expired_token_is_refreshed(fake_oauth):
    account = _account(utcnow() - timedelta(minutes=1))
    db = _RecordingSession()
    await ensure_fresh_token(account, fake_oauth, db)
    assert fake_oauth.refreshed == ["refresh-1"]
    assert account.access_token == "access-refreshed"
    assert account.refresh_token == "refresh-1"
    assert account.token_expires_at > utcnow() + timedelta(minutes=50)
    assert db.commits == 1


async def test_expired_token_without_refresh_token_is_left_alone(fake_oauth):
    account = _account(utcnow() - timedelta(minutes=1), refresh_token=None)
    await ensure_fresh_token(account, fake_oauth, _RecordingSession())
    assert account.access_token == "old-access"
    assert fake_oauth.refreshed == []


async def test_refresh_failure_keeps_old_token(fake_oauth):
    async def _fail(refresh_token):
        raise GoogleOAuthError("invalid_grant")

    fake_oauth.refresh_access_token = _fail
    account = _account(utcnow() - timedelta(minutes=1))
    await ensure_fresh_token(account, fake_oauth, _RecordingSession())
    assert account.access_token == "old-access"
