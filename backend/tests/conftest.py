"""
Shared fixtures: a throwaway SQLite database, an ASGI client, and fakes for the Google adapters.
Environment is set before any ads_manager import so the engine points at the test database.
"""

import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="ads_manager_tests_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENCRYPTION_KEY"] = ""
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id.apps.googleusercontent.com"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["GOOGLE_CALLBACK_URL"] = "http://localhost:3000"
os.environ["FRONTEND_URL"] = "http://frontend.test"

from typing import Optional
from urllib.parse import parse_qs, urlparse

import pytest
from httpx import AsyncClient, ASGITransport

from ads_manager.database import async_session, drop_and_recreate_db, engine
from ads_manager.services.google_ads import AdsAccount, GoogleAdsClient, GoogleAdsError, get_ads_client_factory
from ads_manager.services.google_oauth import (
    GoogleOAuthClient,
    GoogleOAuthError,
    GoogleTokens,
    GoogleUserInfo,
    get_google_oauth,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ── Database ──────────────────────────────────────────────────────────

@pytest.fixture
async def tables(anyio_backend):
    await drop_and_recreate_db()
    yield
    # Pooled aiosqlite connections belong to this test's event loop
    await engine.dispose()


@pytest.fixture
async def db(tables):
    async with async_session() as session:
        yield session


# ── Google fakes ──────────────────────────────────────────────────────

class FakeGoogleOAuth(GoogleOAuthClient):
    """Real consent-URL building; canned token exchange and identity."""

    def __init__(self):
        super().__init__(client_id="test-client-id.apps.googleusercontent.com", client_secret="test-client-secret")
        self.tokens = GoogleTokens(
            access_token="access-1",
            refresh_token="refresh-1",
            id_token="id-token-1",
            expires_in=3600,
        )
        self.user_info: Optional[GoogleUserInfo] = GoogleUserInfo(
            sub="google-sub-1",
            email="owner@example.com",
            name="Ads Owner",
            picture="https://example.com/p.png",
        )
        self.fail_exchange = False
        self.exchanged: list[tuple[str, str]] = []
        self.refreshed: list[str] = []

    async def exchange_code(self, code: str, redirect_uri: str) -> GoogleTokens:
        self.exchanged.append((code, redirect_uri))
        if self.fail_exchange:
            raise GoogleOAuthError("invalid_grant")
        return self.tokens

    async def verify_id_token(self, token: str) -> Optional[GoogleUserInfo]:
        return self.user_info

    async def refresh_access_token(self, refresh_token: str) -> GoogleTokens:
        self.refreshed.append(refresh_token)
        return GoogleTokens(access_token="access-refreshed", expires_in=3600)


class FakeGoogleAds(GoogleAdsClient):
    """In-memory Google Ads: configurable accessible accounts, records campaign calls."""

    def __init__(self):
        super().__init__(developer_token="dev-token", access_token="")
        self.accounts: list[AdsAccount] = [
            AdsAccount(
                customer_id="1234567890",
                descriptive_name="Main Account",
                currency_code="USD",
                time_zone="America/New_York",
                status="ENABLED",
            ),
        ]
        self.extra_accessible: list[str] = []
        self.fail = False
        self.tokens_used: list[str] = []
        self.created: list[dict] = []
        self.deleted: list[tuple[str, str]] = []
        self._next_campaign_id = 9000

    async def list_accessible_customers(self) -> list[str]:
        if self.fail:
            raise GoogleAdsError("unavailable", status_code=503)
        ids = [a.customer_id for a in self.accounts] + self.extra_accessible
        return [f"customers/{i}" for i in ids]

    async def get_customer(self, customer_id: str) -> Optional[AdsAccount]:
        for a in self.accounts:
            if a.customer_id == customer_id:
                return a
        if customer_id in self.extra_accessible:
            return AdsAccount(customer_id=customer_id, descriptive_name=f"Client {customer_id}")
        return None

    async def create_campaign(self, customer_id, name, status, budget, start_date=None, end_date=None) -> str:
        if self.fail:
            raise GoogleAdsError("mutate failed", status_code=400)
        self._next_campaign_id += 1
        self.created.append({"customer_id": customer_id, "name": name, "status": status, "budget": budget})
        return str(self._next_campaign_id)

    async def delete_campaign(self, customer_id: str, campaign_id: str) -> None:
        if self.fail:
            raise GoogleAdsError("mutate failed", status_code=400)
        self.deleted.append((customer_id, campaign_id))


@pytest.fixture
def fake_oauth():
    return FakeGoogleOAuth()


@pytest.fixture
def fake_ads():
    return FakeGoogleAds()


@pytest.fixture
async def client(tables, fake_oauth, fake_ads):
    from ads_manager.main import app

    def _ads_factory(access_token: str) -> GoogleAdsClient:
        fake_ads.tokens_used.append(access_token)
        fake_ads.access_token = access_token
        return fake_ads

    app.dependency_overrides[get_google_oauth] = lambda: fake_oauth
    app.dependency_overrides[get_ads_client_factory] = lambda: _ads_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ── Helpers ───────────────────────────────────────────────────────────

async def register_user(client: AsyncClient, email: str = "a@b.com", password: str = "secret1", name: str = "A") -> dict:
    """Register and return auth headers plus the new user's id."""
    response = await client.post("/auth/register", json={"email": email, "password": password, "name": name})
    assert response.status_code == 200, response.text
    headers = {"Authorization": f"Bearer {response.json()['token']}"}
    me = await client.get("/auth/me", headers=headers)
    return {"headers": headers, "id": me.json()["id"]}


def query_param(url: str, name: str) -> str:
    """Single query-string value from a redirect or consent URL."""
    return parse_qs(urlparse(url).query)[name][0]
