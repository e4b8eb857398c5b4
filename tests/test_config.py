"""
tests/test_config.py -- SECRET_KEY policy and defaults in core/config.py.

Settings is constructed directly with keyword overrides (which win over the
environment) and _env_file=None so a local .env cannot leak in.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_production_requires_secret_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False, secret_key="")


def test_short_secret_key_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, debug=False, secret_key="too-short")


def test_debug_generates_secret_key():
    settings = Settings(_env_file=None, debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_defaults():
    settings = Settings(_env_file=None, debug=False, secret_key="s" * 32, bcrypt_rounds=12, log_dir="logs")
    assert settings.port == 3001
    assert settings.token_expire_seconds == 7 * 24 * 60 * 60
    assert settings.starting_balance == 10
    assert settings.user_cache_ttl == 300
    assert "github" in settings.oauth_providers
