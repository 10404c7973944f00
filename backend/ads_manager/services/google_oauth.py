"""
Google OAuth Client — consent redirect, authorization-code exchange, id-token
verification and refresh-token exchange.

One instance per request, built from Settings by `get_google_oauth`, so the
client credentials are passed explicitly instead of living in module state.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import Depends
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from pydantic import BaseModel

from ads_manager.config import Settings, get_settings

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/adwords",
]

HTTP_TIMEOUT = 30


class GoogleTokens(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_in: Optional[int] = None


class GoogleUserInfo(BaseModel):
    sub: str
    email: str
    name: str
    picture: Optional[str] = None


class GoogleOAuthError(Exception):
    """Token endpoint unreachable or rejected the request."""
    pass


class GoogleOAuthClient:
    """Thin adapter over Google's OAuth 2.0 / OIDC endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self._transport = transport

    def build_auth_url(self, redirect_uri: str, state: str) -> str:
        """Consent-screen URL. Offline access + forced consent so Google returns a refresh token."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def _post_token_endpoint(self, data: dict) -> dict:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=HTTP_TIMEOUT) as client:
                response = await client.post(
                    TOKEN_URL,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Google token endpoint returned {e.response.status_code}: {e.response.text}")
            raise GoogleOAuthError(f"Token endpoint returned {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google token endpoint call failed: {e}")
            raise GoogleOAuthError(str(e)) from e

    async def exchange_code(self, code: str, redirect_uri: str) -> GoogleTokens:
        """
        Exchange an authorization code for tokens.
        `redirect_uri` must be the one used to build the consent URL.
        """
        data = await self._post_token_endpoint({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        })
        if not data.get("access_token"):
            raise GoogleOAuthError("Token response has no access_token")
        return GoogleTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_in=data.get("expires_in"),
        )

    async def refresh_access_token(self, refresh_token: str) -> GoogleTokens:
        data = await self._post_token_endpoint({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        })
        if not data.get("access_token"):
            raise GoogleOAuthError("Refresh response has no access_token")
        return GoogleTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_in=data.get("expires_in"),
        )

    def _verify(self, token: str) -> dict:
        return google_id_token.verify_oauth2_token(
            token,
            google_requests.Request(),
            audience=self.client_id,
        )

    async def verify_id_token(self, token: str) -> Optional[GoogleUserInfo]:
        """
        Verify signature and audience of a Google id token.
        Returns None on any failure (bad signature, wrong audience, expired, key fetch error).
        """
        try:
            payload = await asyncio.to_thread(self._verify, token)
        except (ValueError, GoogleAuthError) as e:
            logger.warning(f"Google id token verification failed: {e}")
            return None

        if not payload or not payload.get("sub") or not payload.get("email"):
            logger.warning("Google id token has no subject or email")
            return None

        return GoogleUserInfo(
            sub=payload["sub"],
            email=payload["email"],
            name=payload.get("name") or payload["email"].split("@")[0],
            picture=payload.get("picture"),
        )


def get_google_oauth(settings: Settings = Depends(get_settings)) -> GoogleOAuthClient:
    """FastAPI dependency."""
    return GoogleOAuthClient(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
    )
