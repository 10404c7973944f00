"""
Tests for application configuration and settings validation.
"""

import os
import pytest
from unittest.mock import patch


def test_settings_loads_defaults():
    """Settings should load with sensible defaults in development."""
    from ads_manager.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "ENVIRONMENT": "development",
        "DATABASE_URL": "postgresql+asyncpg://localhost/test",
    }, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        assert settings.environment == "development"
        assert settings.is_production is False
        assert settings.google_ads_api_version == "v17"
        assert settings.jwt_expire_minutes == 60 * 24
    get_settings.cache_clear()


def test_plain_postgres_url_is_rewritten_for_asyncpg():
    from ads_manager.config import Settings
    settings = Settings(database_url="postgresql://user:pw@db-host/ads")
    assert settings.database_url == "postgresql+asyncpg://user:pw@db-host/ads"


def test_settings_cors_origin_list_includes_frontend():
    """CORS origins string should be split into a list, with the frontend URL appended."""
    from ads_manager.config import Settings
    settings = Settings(
        cors_origins="http://localhost:3000, http://example.com",
        frontend_url="https://app.example.com",
    )
    origins = settings.cors_origin_list
    assert origins == ["http://localhost:3000", "http://example.com", "https://app.example.com"]


def test_callback_urls_built_from_base():
    from ads_manager.config import Settings
    settings = Settings(google_callback_url="https://api.example.com/")
    assert settings.login_callback_url == "https://api.example.com/auth/google/callback"
    assert settings.link_callback_url == "https://api.example.com/api/managed-accounts/callback"


def test_production_rejects_default_secret():
    """Production mode should reject the default secret key."""
    from ads_manager.config import Settings

    with pytest.raises(ValueError, match="SECRET_KEY must be set"):
        Settings(
            environment="production",
            secret_key="change-me-in-production",
            database_url="postgresql+asyncpg://prod-host/db",
        )


def test_production_requires_google_credentials():
    from ads_manager.config import Settings

    with pytest.raises(ValueError, match="GOOGLE_CLIENT_ID"):
        Settings(
            environment="production",
            secret_key="a-real-secret-key-that-is-not-the-default",
            encryption_key="x" * 44,
            google_client_id="",
            google_client_secret="",
            database_url="postgresql+asyncpg://prod-host/db",
        )


def test_production_accepts_complete_settings():
    """Production mode should accept a real secret key and credentials."""
    from ads_manager.config import Settings
    settings = Settings(
        environment="production",
        secret_key="a-real-secret-key-that-is-not-the-default",
        encryption_key="x" * 44,
        google_client_id="id.apps.googleusercontent.com",
        google_client_secret="secret",
        database_url="postgresql+asyncpg://prod-host/db",
    )
    assert settings.is_production is True


def test_engine_options_per_backend():
    import ssl
    from ads_manager.database import engine_options

    assert engine_options("sqlite+aiosqlite:///./dev.db") == {"echo": False}

    plain = engine_options("postgresql+asyncpg://db-host/ads")
    assert plain["pool_pre_ping"] is True
    assert "ssl" not in plain["connect_args"]

    secured = engine_options("postgresql+asyncpg://db-host/ads", use_ssl=True)
    assert isinstance(secured["connect_args"]["ssl"], ssl.SSLContext)
