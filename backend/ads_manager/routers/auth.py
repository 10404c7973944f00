"""
Auth Router — Register, login, Google sign-in, current user.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ads_manager.auth import get_current_user
from ads_manager.config import Settings, get_settings
from ads_manager.crypto import encrypt_token
from ads_manager.database import get_db
from ads_manager.models import User
from ads_manager.services.auth_service import (
    STATE_PURPOSE_LOGIN,
    create_access_token,
    create_oauth_state,
    decode_oauth_state,
    hash_password,
    verify_password,
)
from ads_manager.services.google_oauth import (
    GoogleOAuthClient,
    GoogleOAuthError,
    GoogleTokens,
    GoogleUserInfo,
    get_google_oauth,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


# ── Schemas ────────────────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str


class MeResponse(BaseModel):
    id: int
    email: str
    name: str
    picture: Optional[str] = None
    has_google: bool
    has_password: bool


def _session_token(user: User) -> TokenResponse:
    return TokenResponse(token=create_access_token(user.id, user.email, user.name))


# ── Email / password ───────────────────────────────────────────────────

@router.post("/register", response_model=TokenResponse)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a user with email and password. Returns a JWT."""
    email = payload.email.lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        name=payload.name,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        await db.rollback()
        raise HTTPException(status_code=400, detail="User already exists")

    logger.info(f"Registered user {user.id}")
    return _session_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password. Returns a JWT."""
    result = await db.execute(select(User).where(User.email == payload.email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _session_token(user)


# ── Google sign-in ─────────────────────────────────────────────────────

@router.get("/google")
async def google_login(
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    settings: Settings = Depends(get_settings),
):
    """Redirect to the Google consent screen."""
    state = create_oauth_state(STATE_PURPOSE_LOGIN)
    return RedirectResponse(oauth.build_auth_url(settings.login_callback_url, state), status_code=302)


async def _upsert_google_user(db: AsyncSession, info: GoogleUserInfo, tokens: GoogleTokens) -> User:
    """Find the user by Google subject (or by email, attaching the subject) and store fresh tokens; create if new."""
    result = await db.execute(select(User).where(User.google_id == info.sub))
    user = result.scalar_one_or_none()
    if not user:
        result = await db.execute(select(User).where(User.email == info.email.lower()))
        user = result.scalar_one_or_none()
        if user:
            user.google_id = info.sub
            user.picture = user.picture or info.picture

    if not user:
        user = User(
            google_id=info.sub,
            email=info.email.lower(),
            name=info.name,
            picture=info.picture,
            access_token=encrypt_token(tokens.access_token),
            refresh_token=encrypt_token(tokens.refresh_token),
        )
        db.add(user)
        await db.flush()
        logger.info(f"Created user {user.id} from Google sign-in")
        return user

    user.access_token = encrypt_token(tokens.access_token)
    if tokens.refresh_token:
        user.refresh_token = encrypt_token(tokens.refresh_token)
    await db.flush()
    return user


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
):
    """Google redirects here after consent. Signs the user in and redirects to the frontend with a JWT."""
    if not code:
        raise HTTPException(status_code=400, detail="Invalid authorization code")
    if not decode_oauth_state(state, STATE_PURPOSE_LOGIN):
        raise HTTPException(status_code=400, detail="Invalid or expired state")

    try:
        tokens = await oauth.exchange_code(code, settings.login_callback_url)
    except GoogleOAuthError:
        raise HTTPException(status_code=400, detail="Invalid tokens received")
    if not tokens.id_token:
        raise HTTPException(status_code=400, detail="Invalid tokens received")

    info = await oauth.verify_id_token(tokens.id_token)
    if not info:
        raise HTTPException(status_code=400, detail="Could not get user information")

    user = await _upsert_google_user(db, info, tokens)
    session = _session_token(user)
    return RedirectResponse(
        f"{settings.frontend_url.rstrip('/')}/auth/callback?token={session.token}",
        status_code=302,
    )


# ── Current user ───────────────────────────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        picture=user.picture,
        has_google=bool(user.google_id),
        has_password=bool(user.password_hash),
    )


@router.delete("/me")
async def delete_me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Delete the current user together with their managed accounts and campaigns."""
    user_id = user.id
    await db.delete(user)
    await db.flush()
    logger.info(f"Deleted user {user_id}")
    return {"message": "User deleted successfully"}
