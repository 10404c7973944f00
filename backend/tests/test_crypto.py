"""
Tests for token encryption at rest.
"""

import pytest
from cryptography.fernet import Fernet

from ads_manager.config import get_settings
from ads_manager.crypto import decrypt_token, encrypt_token


@pytest.fixture
def encryption_key(monkeypatch):
    key = Fernet.generate_key().decode()
    monkeypatch.setattr(get_settings(), "encryption_key", key)
    yield key


def test_plaintext_without_key():
    assert encrypt_token("ya29.token") == "ya29.token"
    assert decrypt_token("ya29.token") == "ya29.token"


def test_none_passes_through():
    assert encrypt_token(None) is None
    assert decrypt_token(None) is None


def test_encrypts_with_key(encryption_key):
    stored = encrypt_token("ya29.token")
    assert stored != "ya29.token"
    assert Fernet(encryption_key.encode()).decrypt(stored.encode()).decode() == "ya29.token"
    assert decrypt_token(stored) == "ya29.token"


def test_legacy_plaintext_is_read_as_is(encryption_key):
    assert decrypt_token("written-before-key") == "written-before-key"
