"""Unit tests for core/config.py -- startup validation of Settings."""

import pytest
from pydantic import ValidationError

from core.config import DEFAULT_TOKEN_WINDOW, Settings

GOOD_KEY = "k" * 32


def test_missing_secret_key_refuses_to_start():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, secret_key="")


def test_short_secret_key_is_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, secret_key="short")


def test_non_positive_token_window_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key=GOOD_KEY, token_expire_seconds=0)


def test_defaults():
    s = Settings(_env_file=None, secret_key=GOOD_KEY, login_rate_limit="10/minute")
    assert s.token_expire_seconds == DEFAULT_TOKEN_WINDOW == 86400
    assert s.login_rate_limit == "10/minute"
    assert s.secure_cookies is False
    assert s.revocation_sweep_seconds == 60


def test_values_come_from_environment(monkeypatch):
    monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", "120")
    monkeypatch.setenv("SECURE_COOKIES", "true")
    s = Settings(_env_file=None, secret_key=GOOD_KEY)
    assert s.token_expire_seconds == 120
    assert s.secure_cookies is True
