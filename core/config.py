"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Hired Valley happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The app
      lifespan reads it once and injects the values into the TokenIssuer and
      the OAuth registry, so nothing downstream re-reads the environment.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Startup fails deterministically on an
      unusable configuration instead of at first use.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and
       the session cookie signature both rely on key entropy.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

  [P1] An OAuth provider is either fully configured (client id, secret and
       redirect URL) or not configured at all. A partial configuration is a
       startup failure; an unconfigured provider simply has no routes.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("hiredvalley.config")

_DEFAULT_DB_URL = "sqlite:///./hiredvalley.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = 24 * 3600

    # ------------------------------------------------------------------
    # OAuth providers (optional -- empty string means provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_url: str = ""

    linkedin_client_id: str = ""
    linkedin_client_secret: str = ""
    linkedin_redirect_url: str = ""

    # YouTube reuses the Google OAuth client with the upload scope; only the
    # callback URL differs.
    youtube_redirect_url: str = ""

    oauth_timeout_seconds: float = 10.0
    oauth_success_url: str = "/welcome"
    oauth_failure_url: str = "/"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
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
    def validate_oauth_providers(self) -> "Settings":
        """Reject half-configured OAuth providers [P1]."""
        groups = {
            "google": (self.google_client_id, self.google_client_secret, self.google_redirect_url),
            "linkedin": (self.linkedin_client_id, self.linkedin_client_secret, self.linkedin_redirect_url),
        }
        for name, values in groups.items():
            if any(values) and not all(values):
                upper = name.upper()
                raise ValueError(
                    f"{name} OAuth is partially configured. Set all of {upper}_CLIENT_ID, "
                    f"{upper}_CLIENT_SECRET and {upper}_REDIRECT_URL, or none of them."
                )
        if self.youtube_redirect_url and not self.provider_enabled("google"):
            raise ValueError("YOUTUBE_REDIRECT_URL requires the Google OAuth client to be configured.")
        return self

    def provider_enabled(self, provider: str) -> bool:
        """Return True when every setting the provider needs is present."""
        if provider == "google":
            return bool(self.google_client_id and self.google_client_secret and self.google_redirect_url)
        if provider == "linkedin":
            return bool(self.linkedin_client_id and self.linkedin_client_secret and self.linkedin_redirect_url)
        if provider == "youtube":
            return self.provider_enabled("google") and bool(self.youtube_redirect_url)
        return False


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
