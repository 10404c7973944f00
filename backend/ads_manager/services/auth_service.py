"""
Auth Service — Password hashing, JWT creation/verification, OAuth state tokens.
"""

import secrets
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from ads_manager.config import get_settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

ALGORITHM = "HS256"
STATE_EXPIRE_MINUTES = 10

STATE_PURPOSE_LOGIN = "login"
STATE_PURPOSE_LINK = "link"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    # Users created through Google login have no password
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def create_access_token(user_id: int, email: str, name: str) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "name": name,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    # State tokens share the signing key; never accept them as sessions
    if payload.get("purpose"):
        return None
    return payload


def create_oauth_state(purpose: str, user_id: Optional[int] = None) -> str:
    """
    Anti-replay `state` for the Google consent redirect.
    A short-lived signed token: a random nonce, what the callback is for, and
    (for account linking) which local user started the flow.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "nonce": secrets.token_urlsafe(16),
        "purpose": purpose,
        "exp": now + timedelta(minutes=STATE_EXPIRE_MINUTES),
        "iat": now,
    }
    if user_id is not None:
        payload["uid"] = str(user_id)
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_oauth_state(state: Optional[str], purpose: str) -> Optional[dict]:
    """Return the state payload, or None if missing, expired, tampered or for another flow."""
    if not state:
        return None
    settings = get_settings()
    try:
        payload = jwt.decode(state, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected OAuth state: {e}")
        return None
    if payload.get("purpose") != purpose:
        logger.warning(f"Rejected OAuth state for purpose {payload.get('purpose')!r}, expected {purpose!r}")
        return None
    return payload
