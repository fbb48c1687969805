"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Aquarium Monitor happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. token_duration_minutes -> TOKEN_DURATION_MINUTES).

  @field_validator(mode="before"): TOKEN_DURATION_MINUTES never fails startup.
      Absent, malformed or non-positive values fall back to 15 minutes.

  @model_validator(mode="after"): dev mode (DEBUG=true) generates a SECRET_KEY
      with a warning; production mode refuses to start without one.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/ or records/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("aquarium.config")

DEFAULT_TOKEN_DURATION_MINUTES = 15

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'aquarium_monitor.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_duration_minutes: int = DEFAULT_TOKEN_DURATION_MINUTES
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Breach check (Pwned Passwords range API)
    # ------------------------------------------------------------------

    pwned_api_url: str = "https://api.pwnedpasswords.com"
    pwned_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_duration_minutes", mode="before")
    @classmethod
    def fallback_token_duration(cls, value: object) -> int:
        """Coerce TOKEN_DURATION_MINUTES, falling back to the default on bad input."""
        if value is None or value == "":
            return DEFAULT_TOKEN_DURATION_MINUTES
        try:
            minutes = int(str(value).strip())
        except ValueError:
            logger.warning(
                "TOKEN_DURATION_MINUTES=%r is not an integer; using %d",
                value,
                DEFAULT_TOKEN_DURATION_MINUTES,
            )
            return DEFAULT_TOKEN_DURATION_MINUTES
        if minutes <= 0:
            logger.warning(
                "TOKEN_DURATION_MINUTES=%d is not positive; using %d",
                minutes,
                DEFAULT_TOKEN_DURATION_MINUTES,
            )
            return DEFAULT_TOKEN_DURATION_MINUTES
        return minutes

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive a restart.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not survive restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
