"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for cookie-auth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a throwaway secret,
      production mode refuses to start without one.

Security notes:
  The length policy for the secret lives in auth.keys.SigningKey, which is the
  only consumer of the raw value. This module only decides whether a secret
  exists at all.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("cookieauth.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'cookieauth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (as long as DEBUG is set or a
    SECRET_KEY is provided).
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    # SecretStr keeps the value out of repr() and log output.
    secret_key: SecretStr = SecretStr("")
    database_url: str = _DEFAULT_DB_URL
    # JSON list in the environment, e.g. ALLOWED_HOSTS='["auth.example.com"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    session_cookie_name: str = "session"
    # 0 disables the expiry field; the cookie then lives for the browser session.
    session_ttl_seconds: int = Field(default=3600, ge=0)
    secure_cookies: bool = True

    # ------------------------------------------------------------------
    # Password hashing (Argon2id cost parameters)
    # ------------------------------------------------------------------

    password_time_cost: int = Field(default=3, ge=1)
    password_memory_cost: int = Field(default=65536, ge=8)  # KiB
    password_parallelism: int = Field(default=4, ge=1)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY presence policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.
        """
        if not self.secret_key.get_secret_value():
            if self.debug:
                self.secret_key = SecretStr(secrets.token_hex(32))
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        return self

    @property
    def session_ttl(self) -> int | None:
        """Token lifetime in seconds, or None when sessions never expire server-side."""
        return self.session_ttl_seconds or None


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
