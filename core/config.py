"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for homehost happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      lifespan in api/main.py reads it once and hands the values to the
      PasswordHasher and TokenService constructors; those components never
      read configuration themselves.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

Signing secret policy:
  A missing JWT_SECRET is NOT a startup failure. Token operations check for it
  lazily and raise ConfigurationError on first use, so the rest of the server
  (health checks, static routes) still comes up and the operator sees a clear
  500 on the first login attempt. In DEBUG mode a random key is generated
  instead, with a warning -- sessions will not survive a restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("homehost.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'homehost_auth.db'}"


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
    # "production" switches on secure cookies.
    environment: str = "development"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens and passwords
    # ------------------------------------------------------------------

    # Empty string is the "not configured" sentinel -- see module docstring.
    jwt_secret: str = ""
    token_ttl: str = "1d"
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    cookie_name: str = "auth_token"
    cookie_max_age: int = 24 * 60 * 60
    cookie_domain: Optional[str] = None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    client_base_url: str = "http://localhost:3000"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @model_validator(mode="after")
    def check_jwt_secret(self) -> "Settings":
        """Generate a dev secret in DEBUG mode; warn about weak secrets.

        A missing secret outside DEBUG stays empty; TokenService raises
        ConfigurationError when it is first needed.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
            return self
        if len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is shorter than 32 characters; use a longer random value.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
