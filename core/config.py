"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TokenGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. token_expire_seconds -> TOKEN_EXPIRE_SECONDS). Type coercion and
      validation are built in. Dict fields (login_accounts) are read as JSON.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Used for the DEBUG-conditional API_KEY logic: dev mode
      generates a key with a warning, production mode refuses to start
      without one when the key gate is enabled.

Security notes:
  [M6] API_KEY shorter than 32 chars is rejected outright.

  [M7] In production mode (DEBUG not set or false), enabling the API key gate
       without a key is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tokengate.config")

_DEFAULT_TOKEN_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'tokengate_tokens.db'}"

# Serialized tokens are "value|resource_id"; a resource id carrying the
# separator could never be parsed back.
TOKEN_SEPARATOR = "|"


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

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    token_db_url: str = _DEFAULT_TOKEN_DB_URL
    # Lifetime of an issued token. Every authenticated response issues a new
    # one, so this is effectively the idle timeout of a client.
    token_expire_seconds: int = 3600
    token_parameter_name: str = "token"
    token_header_name: str = "X-Token"
    # True: every token failure becomes a bare 403.
    # False: the specific failure kind and message are returned (401).
    token_forbidden_on_error: bool = True
    purge_interval_seconds: int = 6 * 60 * 60

    # ------------------------------------------------------------------
    # Static API key (optional outer gate)
    # ------------------------------------------------------------------

    api_key_enabled: bool = False
    # Empty string is the sentinel for "not configured".
    api_key: str = ""
    api_key_header_name: str = "X-API-KEY"
    api_key_parameter_name: str = "apikey"

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    # username -> password. Plain demo accounts; the username becomes the
    # resource identifier of the issued token.
    login_accounts: dict[str, str] = {}
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Enforce token and API key policy at startup [M6][M7].

        Dev mode (DEBUG=true): a missing API_KEY is auto-generated with a
            warning. The key is never logged, so the gate stays closed until
            a real key is configured.

        Production mode: enabling the key gate without API_KEY is an error.
        """
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be a positive number of seconds.")
        if self.purge_interval_seconds <= 0:
            raise ValueError("PURGE_INTERVAL_SECONDS must be a positive number of seconds.")
        for username in self.login_accounts:
            if not username or TOKEN_SEPARATOR in username:
                raise ValueError(f"Login username {username!r} is empty or contains '{TOKEN_SEPARATOR}'.")
        if not self.api_key_enabled:
            return self
        if not self.api_key:
            if self.debug:
                self.api_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated API_KEY. " "Clients will be rejected until API_KEY is set.")
            else:
                raise ValueError(
                    "API_KEY is required when API_KEY_ENABLED is true. "
                    "Set API_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.api_key) < 32:
            raise ValueError("API_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
