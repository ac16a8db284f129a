"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the auth service happen here. No server
module should call os.getenv() or os.environ.get() directly -- import
get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, database_url -> DATABASE_URL).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. A missing or short SECRET_KEY is a startup-fatal condition.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
ledger/, or client/.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("musafir.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'musafir_auth.db'}"

# One day. Tokens, the auth cookie, and revocation entries share this window.
DEFAULT_TOKEN_WINDOW = 24 * 60 * 60


class ConfigurationMissing(ValueError):
    """Raised when required process-wide configuration is absent at startup."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field except secret_key has a default. Tests set SECRET_KEY in the
    environment before the first get_settings() call.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured"; the validator rejects it.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Tokens and cookies
    # ------------------------------------------------------------------

    token_expire_seconds: int = DEFAULT_TOKEN_WINDOW
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Revocation ledger
    # ------------------------------------------------------------------

    # Sweep interval for expired revocation entries. Bounds eviction latency.
    revocation_sweep_seconds: int = 60

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to start without a signing secret.

        A missing key would mean every issued token is signed with a value that
        changes on restart (or worse, a guessable default). Keys shorter than
        32 characters are rejected for insufficient HS256 key entropy.
        """
        if not self.secret_key:
            raise ConfigurationMissing(
                "SECRET_KEY is required. Set SECRET_KEY in your environment or .env file."
            )
        if len(self.secret_key) < 32:
            raise ConfigurationMissing("SECRET_KEY must be at least 32 characters.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    settings = Settings()
    if settings.debug:
        logger.warning("DEBUG is enabled -- do not run this configuration in production")
    return settings
