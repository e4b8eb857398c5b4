"""
core/config.py -- Monitorium settings, read from the environment and .env.

get_settings() is the only way modules reach configuration. Timings mirror
the service's historical behaviour: 7-day tokens, bcrypt cost 12, a 10-minute
default cache TTL swept every 2 minutes, and 5-minute user cache entries.

SECRET_KEY signs every JWT. Without DEBUG it must be set and at least 32
characters; with DEBUG a throwaway key is generated, so tokens die on restart.

Layer rule: core/ is the kernel. No imports from api/, auth/, or cache/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("monitorium.config")


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

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"  # noqa: S104 -- bind address for containers
    port: int = 3001
    database_url: str = "sqlite:///./monitorium.db"
    cors_origins: list[str] = ["*"]
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    log_level: str = "INFO"
    # Directory for combined.log / error.log. Empty string disables file logs.
    log_dir: str = "logs"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 7 * 24 * 60 * 60
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    starting_balance: int = Field(default=10, ge=0)
    oauth_providers: list[str] = ["google", "github", "yandex", "vk"]

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    cache_default_ttl: int = 600
    # Seconds between expiry sweeps. 0 disables the background sweep.
    cache_check_period: int = 120
    user_cache_ttl: int = 300

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
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


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
