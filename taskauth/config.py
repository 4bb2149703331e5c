"""Application configuration using pydantic-settings."""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskauth.constants import (
    DEFAULT_AUDIENCE,
    DEFAULT_ISSUER,
    MIN_SECRET_BYTES,
    PLACEHOLDER_SECRET,
    SUPPORTED_ALGORITHM,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # JWT / Auth
    jwt_secret_key: str = Field(
        default=PLACEHOLDER_SECRET,
        description="JWT signing secret. MUST be overridden in production.",
    )
    jwt_algorithm: Literal["HS256"] = SUPPORTED_ALGORITHM
    jwt_issuer: str = DEFAULT_ISSUER
    jwt_audience: str = DEFAULT_AUDIENCE
    jwt_access_token_expire_seconds: int = 86400  # 24 hours
    jwt_refresh_token_expire_seconds: int = 604800  # 7 days
    jwt_leeway_seconds: int = 0

    # Revocation
    revocation_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = Field(default="redis://localhost:6379/0")
    revocation_sweep_interval_seconds: int = 300
    revocation_max_entries: int = 100_000

    # Identity lookups made during refresh
    identity_cache_ttl_seconds: int = 120
    identity_cache_max_entries: int = 1024

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    @model_validator(mode="after")
    def enforce_jwt_secret_strength(self) -> "Settings":
        """Enforce JWT secret requirements based on environment.

        - Non-dev: reject the placeholder secret AND require >= 32 bytes.
        - Dev: emit a warning for short secrets so local runs aren't blocked.
          The key manager still refuses to sign with them.
        """
        secret_len = len(self.jwt_secret_key.encode("utf-8"))
        if self.environment != "development":
            if self.jwt_secret_key == PLACEHOLDER_SECRET:
                raise ValueError(
                    "jwt_secret_key must be changed from its default value "
                    "in staging/production environments"
                )
            if secret_len < MIN_SECRET_BYTES:
                raise ValueError(
                    f"jwt_secret_key must be at least {MIN_SECRET_BYTES} bytes "
                    "in staging/production environments"
                )
        else:
            if secret_len < MIN_SECRET_BYTES:
                import warnings

                warnings.warn(
                    f"jwt_secret_key is shorter than {MIN_SECRET_BYTES} bytes; "
                    "token issuance will fail until a strong secret is configured",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @model_validator(mode="after")
    def enforce_token_lifetimes(self) -> "Settings":
        """Access and refresh lifetimes must be positive and distinct."""
        if self.jwt_access_token_expire_seconds <= 0:
            raise ValueError("jwt_access_token_expire_seconds must be positive")
        if self.jwt_refresh_token_expire_seconds <= self.jwt_access_token_expire_seconds:
            raise ValueError(
                "jwt_refresh_token_expire_seconds must be longer than "
                "jwt_access_token_expire_seconds"
            )
        if self.jwt_leeway_seconds < 0:
            raise ValueError("jwt_leeway_seconds must not be negative")
        return self

    @property
    def access_token_lifetime(self) -> timedelta:
        return timedelta(seconds=self.jwt_access_token_expire_seconds)

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return timedelta(seconds=self.jwt_refresh_token_expire_seconds)

    @property
    def leeway(self) -> timedelta:
        return timedelta(seconds=self.jwt_leeway_seconds)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
