"""
Google Ads API Client
Calls the Google Ads REST interface over httpx with a user's delegated OAuth token.
Covers account discovery and campaign create/remove.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

import httpx
from fastapi import Depends
from pydantic import BaseModel

from ads_manager.config import Settings, get_settings
from ads_manager.utils import customer_id_from_resource, normalize_customer_id

logger = logging.getLogger(__name__)

API_BASE = "https://googleads.googleapis.com"
HTTP_TIMEOUT = 30

CUSTOMER_QUERY = (
    "SELECT customer.id, customer.descriptive_name, customer.currency_code, "
    "customer.time_zone, customer.status FROM customer LIMIT 1"
)


class AdsAccount(BaseModel):
    customer_id: str
    descriptive_name: str = ""
    currency_code: str = ""
    time_zone: str = ""
    status: str = ""


class GoogleAdsError(Exception):
    """Google Ads API unreachable or returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GoogleAdsClient:
    """
    Wrapper around the Google Ads REST API.
    Each instance is bound to one access token.
    """

    def __init__(
        self,
        developer_token: str,
        access_token: str,
        api_version: str = "v17",
        login_customer_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.developer_token = developer_token
        self.access_token = access_token
        self.api_version = api_version
        self.login_customer_id = normalize_customer_id(login_customer_id) if login_customer_id else None
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"{API_BASE}/{self.api_version}"

    @property
    def headers(self) -> dict[str, str]:
        h = {
            "Authorization": f"Bearer {self.access_token}",
            "developer-token": self.developer_token,
            "Content-Type": "application/json",
        }
        if self.login_customer_id:
            h["login-customer-id"] = self.login_customer_id
        return h

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict:
        url = f"{self.base_url}/{path}"
        logger.info(f"Google Ads call: {method} {path}")
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=HTTP_TIMEOUT) as client:
                response = await client.request(method, url, headers=self.headers, json=json)
                response.raise_for_status()
                return response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            logger.error(f"Google Ads {method} {path} failed: {e.response.status_code}: {e.response.text[:500]}")
            raise GoogleAdsError(
                f"Google Ads API returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google Ads {method} {path} failed: {e}")
            raise GoogleAdsError(f"Google Ads API call failed: {e}") from e

    # ── Accounts ──────────────────────────────────────────────────────

    async def list_accessible_customers(self) -> list[str]:
        """Resource names ('customers/123') reachable with this token."""
        data = await self._request("GET", "customers:listAccessibleCustomers")
        return data.get("resourceNames", []) or []

    async def get_customer(self, customer_id: str) -> Optional[AdsAccount]:
        data = await self._request(
            "POST",
            f"customers/{customer_id}/googleAds:search",
            json={"query": CUSTOMER_QUERY},
        )
        results = data.get("results") or []
        if not results:
            return None
        customer = results[0].get("customer") or {}
        return AdsAccount(
            customer_id=str(customer.get("id") or customer_id),
            descriptive_name=customer.get("descriptiveName", ""),
            currency_code=customer.get("currencyCode", ""),
            time_zone=customer.get("timeZone", ""),
            status=customer.get("status", ""),
        )

    async def list_accessible_accounts(self) -> list[AdsAccount]:
        """
        List accessible customers with their details.
        A customer whose details can't be fetched is left out; only the listing call itself raises.
        """
        resource_names = await self.list_accessible_customers()
        accounts = []
        for resource_name in resource_names:
            customer_id = customer_id_from_resource(resource_name)
            try:
                account = await self.get_customer(customer_id)
            except GoogleAdsError as e:
                logger.warning(f"Skipping customer {customer_id}: {e}")
                continue
            if account:
                accounts.append(account)
        logger.info(f"Found {len(accounts)} of {len(resource_names)} accessible Google Ads accounts")
        return accounts

    async def check_account_access(self, customer_id: str) -> bool:
        customer_id = normalize_customer_id(customer_id)
        resource_names = await self.list_accessible_customers()
        return any(customer_id_from_resource(r) == customer_id for r in resource_names)

    # ── Campaigns ─────────────────────────────────────────────────────

    async def create_campaign(
        self,
        customer_id: str,
        name: str,
        status: str,
        budget: Decimal,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> str:
        """Create a daily budget and a Search campaign using it. Returns the new campaign id."""
        budget_result = await self._request(
            "POST",
            f"customers/{customer_id}/campaignBudgets:mutate",
            json={"operations": [{"create": {
                "name": f"{name} budget {uuid.uuid4().hex[:8]}",
                "amountMicros": str(int(Decimal(budget) * 1_000_000)),
                "deliveryMethod": "STANDARD",
                "explicitlyShared": False,
            }}]},
        )
        budget_resource = _first_resource_name(budget_result)
        if not budget_resource:
            raise GoogleAdsError(f"Campaign budget created but no resource name returned: {budget_result}")

        campaign: dict[str, Any] = {
            "name": name,
            "status": status,
            "campaignBudget": budget_resource,
            "advertisingChannelType": "SEARCH",
            "manualCpc": {},
            "networkSettings": {
                "targetGoogleSearch": True,
                "targetSearchNetwork": True,
                "targetContentNetwork": False,
            },
        }
        if start_date:
            campaign["startDate"] = start_date.isoformat()
        if end_date:
            campaign["endDate"] = end_date.isoformat()

        result = await self._request(
            "POST",
            f"customers/{customer_id}/campaigns:mutate",
            json={"operations": [{"create": campaign}]},
        )
        resource_name = _first_resource_name(result)
        if not resource_name:
            raise GoogleAdsError(f"Campaign created but no resource name returned: {result}")
        campaign_id = resource_name.rsplit("/", 1)[-1]
        logger.info(f"Created Google Ads campaign {campaign_id} for customer {customer_id}")
        return campaign_id

    async def delete_campaign(self, customer_id: str, campaign_id: str) -> None:
        await self._request(
            "POST",
            f"customers/{customer_id}/campaigns:mutate",
            json={"operations": [{"remove": f"customers/{customer_id}/campaigns/{campaign_id}"}]},
        )
        logger.info(f"Removed Google Ads campaign {campaign_id} for customer {customer_id}")


def _first_resource_name(result: dict) -> Optional[str]:
    results = result.get("results") or []
    if results and isinstance(results[0], dict):
        return results[0].get("resourceName")
    return None


AdsClientFactory = Callable[[str], GoogleAdsClient]


def get_ads_client_factory(settings: Settings = Depends(get_settings)) -> AdsClientFactory:
    """FastAPI dependency: access token -> client configured from settings."""

    def create_ads_client(access_token: str) -> GoogleAdsClient:
        return GoogleAdsClient(
            developer_token=settings.google_ads_developer_token,
            access_token=access_token,
            api_version=settings.google_ads_api_version,
            login_customer_id=settings.google_ads_login_customer_id or None,
        )

    return create_ads_client
