"""
core/config.py -- Foundex settings, read once from the environment.

Every knob the auth service has lives on Settings. Other modules ask
get_settings() for it and never read os.environ themselves.

How it is loaded:
  Settings is a pydantic-settings BaseSettings. Each field is filled from the
  upper-cased env var of the same name, or from a .env file in the working
  directory, and coerced to its annotated type.

  get_settings() is wrapped in lru_cache, so the first caller builds the
  instance and every later caller (route modules, the CLI, the lifespan)
  shares it. FastAPI documents the same pattern for Depends().

  Two after-validators run once all fields are known. One decides what
  happens when SECRET_KEY is absent, the other bounds the reset-code and
  token lifetimes.

Startup policy:
  [M6] A SECRET_KEY under 32 characters is refused. Every session token is
       signed with it.

  [M7] Without DEBUG=true, an unset SECRET_KEY stops the process at import
       time. With DEBUG=true a throwaway key is generated and a warning logged.

  ADMIN_EMAILS is parsed here and passed to auth.policy.AdminPolicy by the
  lifespan. It is not persisted and not reloaded while the process runs.

Layer rule: core/ imports nothing from api/, web/ or auth/.
"""

import json
import logging
import secrets
from functools import lru_cache
from typing import Annotated

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger("foundex.config")

# Shortest reset code we accept. Six alphanumeric characters is ~31 bits,
# enough for a 15-minute window without attempt counting.
MIN_RESET_CODE_LENGTH = 6


class Settings(BaseSettings):
    """Foundex auth configuration.

    Every field has a default, so tests can build Settings(secret_key=...)
    directly with no .env present.

    List fields (ADMIN_EMAILS, PROTECTED_PREFIXES, ALLOWED_HOSTS, CORS_ORIGINS)
    accept either a comma-separated string or a JSON array.
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
    # "" means unset; validate_secret_key replaces it or raises.
    secret_key: str = ""
    database_url: str = "sqlite:///foundex_auth.db"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # Seven days. Cookie max-age and JWT exp are both derived from this.
    token_expire_seconds: int = 7 * 24 * 60 * 60
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    admin_emails: Annotated[list[str], NoDecode] = []

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    reset_code_ttl_seconds: int = 15 * 60
    reset_code_length: int = 8

    # ------------------------------------------------------------------
    # Edge route guard
    # ------------------------------------------------------------------

    protected_prefixes: Annotated[list[str], NoDecode] = ["/profile", "/startup-profile", "/dashboard"]
    entry_point: str = "/"

    # ------------------------------------------------------------------
    # Email (Plunk). Empty key means messages are logged, not sent.
    # ------------------------------------------------------------------

    plunk_api_key: str = ""
    plunk_api_url: str = "https://api.useplunk.com/v1/send"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: Annotated[list[str], NoDecode] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("admin_emails", "protected_prefixes", "allowed_hosts", "cors_origins", mode="before")
    @classmethod
    def split_list(cls, value):
        """Accept "a,b,c" or a JSON array string as well as a real list."""
        if isinstance(value, str):
            raw = value.strip()
            if raw.startswith("["):
                return [str(v).strip() for v in json.loads(raw) if str(v).strip()]
            return [part.strip() for part in raw.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY [M6][M7].

        DEBUG=true generates a random key; tokens issued before a restart
        stop verifying after it. Otherwise a missing key is an error.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "DEBUG mode: SECRET_KEY not set, generated a temporary one. "
                    "Tokens will not survive a restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_reset_policy(self) -> "Settings":
        """Reject reset codes too short to survive guessing within their window."""
        if self.reset_code_length < MIN_RESET_CODE_LENGTH:
            raise ValueError(f"RESET_CODE_LENGTH must be at least {MIN_RESET_CODE_LENGTH}.")
        if self.reset_code_ttl_seconds <= 0:
            raise ValueError("RESET_CODE_TTL_SECONDS must be positive.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings on first call and return the same instance afterwards.

    Tests that change env vars must call get_settings.cache_clear() first.
    """
    return Settings()
