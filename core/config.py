"""
core/config.py -- Tradepost settings, read once from the environment.

Every environment variable the service understands is a field on Settings.
Other modules call get_settings(); nothing else reads os.environ.

How values resolve:
  Environment variables first, then an optional .env file, then the field
  default. Names are case-insensitive (DATABASE_URL -> database_url) and
  pydantic coerces types, so AUTH_STRATEGY=bogus fails at startup rather
  than on the first request.

  get_settings() is wrapped in lru_cache, so the process builds one Settings
  instance and every caller shares it.

Secret key:
  Signs bearer tokens and the session cookie. Required outside DEBUG mode and
  never shorter than 32 characters. With DEBUG=true and no key, a random key
  is generated per process.

Cookies:
  ENVIRONMENT=production switches the session cookie to Secure and
  SameSite=strict. Anything else keeps SameSite=lax over plain HTTP so local
  development works without TLS.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or catalog/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tradepost.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'tradepost.db'}"


class Settings(BaseSettings):
    """Runtime configuration for the API, the CLI and the stores.

    Every field has a default, so tests can build Settings() with only
    DEBUG=true in the environment. check_secret_key() runs after all
    fields resolve.
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
    environment: Literal["development", "production"] = "development"
    # "" means unset; check_secret_key() replaces it or fails startup.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 24 * 3600
    reset_token_expire_minutes: int = 15
    # "token": bearer header only, "session": session cookie only,
    # "any": bearer header first, then session cookie.
    auth_strategy: Literal["token", "session", "any"] = "any"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_ttl_seconds: int = 24 * 3600
    session_cookie_name: str = "tradepost_sid"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    reset_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def secure_cookies(self) -> bool:
        return self.is_production

    @property
    def cookie_samesite(self) -> str:
        return "strict" if self.is_production else "lax"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def check_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY.

        DEBUG=true with no key: generate one and warn. Issued tokens and
            session cookies become invalid whenever the process restarts.
        Otherwise a missing key stops startup.
        A key under 32 characters is refused in every mode.
        """
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY must be set unless DEBUG=true. "
                    "Export it or add it to .env (32+ characters)."
                )
            self.secret_key = secrets.token_hex(32)
            logger.warning("SECRET_KEY not set; generated a throwaway key. Tokens and sessions reset on restart.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY is too short (minimum 32 characters).")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings on first use and return the same instance afterwards.

    Tests that change environment variables must call
    get_settings.cache_clear() for the new values to be read.
    """
    return Settings()
