"""
Encryption of OAuth tokens stored in the database.

Uses Fernet symmetric encryption from the `cryptography` package, keyed by
ENCRYPTION_KEY. Without a key (development and tests) values are stored as-is.
"""

import logging
from functools import lru_cache
from cryptography.fernet import Fernet, InvalidToken
from ads_manager.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def _fernet_for(key: str) -> Fernet | None:
    if not key:
        logger.warning(
            "ENCRYPTION_KEY not set; OAuth tokens will be stored in plaintext. "
            "This is acceptable for local development only."
        )
        return None
    try:
        return Fernet(key.encode())
    except (ValueError, TypeError) as exc:
        raise RuntimeError(f"Invalid ENCRYPTION_KEY: {exc}") from exc


def _get_fernet() -> Fernet | None:
    settings = get_settings()
    if not settings.encryption_key and settings.is_production:
        raise RuntimeError("ENCRYPTION_KEY must be set in production.")
    return _fernet_for(settings.encryption_key)


def encrypt_token(token: str | None) -> str | None:
    """Encrypt a token for storage. None stays None."""
    if token is None:
        return None
    f = _get_fernet()
    if f is None:
        return token
    return f.encrypt(token.encode()).decode()


def decrypt_token(stored: str | None) -> str | None:
    """Decrypt a stored token. None stays None."""
    if stored is None:
        return None
    f = _get_fernet()
    if f is None:
        return stored
    try:
        return f.decrypt(stored.encode()).decode()
    except InvalidToken:
        # Rows written before a key was configured
        logger.warning("Stored token is not Fernet ciphertext, using it as-is.")
        return stored
