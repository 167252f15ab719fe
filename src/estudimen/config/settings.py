"""Configuration management using pydantic-settings.

Supports environment variables and .env file loading. Every secret the
auth core needs is required at process start; a missing or malformed value
is reported as ConfigurationError by load_settings().
"""

from pathlib import Path

from pydantic import Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from estudimen.exceptions import ConfigurationError

MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),  # .env.local overrides .env
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # Set True in production for structured logs

    # Token signing
    jwt_secret: SecretStr = Field(..., description="Secret key for JWT signing (min 32 chars)")
    jwt_issuer: str = "estudimen"
    jwt_audience: str = "estudimen-users"
    access_token_expiry_minutes: int = Field(
        default=15,
        ge=1,
        le=1440,  # Max 24 hours
        description="Access token lifetime in minutes",
    )
    refresh_token_expiry_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Refresh token lifetime in days",
    )
    hash_time_cost: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Argon2 time cost for refresh-token and password hashes",
    )

    # API key encryption
    encryption_key: SecretStr = Field(
        ...,
        description="Process-wide key for encrypting provider API keys (min 32 chars)",
    )
    max_api_keys_per_user: int = Field(default=5, ge=1, le=50)
    api_key_prefix_length: int = Field(default=8, ge=0, le=16)

    # Database
    db_type: str = Field(
        default="sqlite",
        description="Record store backend: memory, sqlite or d1",
    )
    db_path: Path = Field(
        default=Path("data/estudimen.db"),
        description="SQLite database path (used when db_type=sqlite)",
    )

    # Cloudflare D1 Database (used when db_type=d1)
    d1_account_id: str | None = Field(default=None, description="Cloudflare account ID")
    d1_database_id: str | None = Field(default=None, description="Cloudflare D1 database ID")
    d1_api_token: SecretStr | None = Field(
        default=None,
        description="Cloudflare API token with D1 permissions",
    )

    # Maintenance
    token_cleanup_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="How often expired refresh-token records are purged",
    )

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @field_validator("jwt_secret", "encryption_key")
    @classmethod
    def validate_secret_length(cls, v: SecretStr) -> SecretStr:
        """Reject secrets too short to be safe."""
        if len(v.get_secret_value()) < MIN_SECRET_LENGTH:
            raise ValueError(f"must be at least {MIN_SECRET_LENGTH} characters long")
        return v

    @field_validator("db_type")
    @classmethod
    def validate_db_type(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "sqlite", "d1"):
            raise ValueError(f"Unsupported database type: {v}")
        return v

    @model_validator(mode="after")
    def validate_token_lifetimes(self) -> "Settings":
        """Access tokens must expire strictly before refresh tokens."""
        if self.access_token_expiry_minutes >= self.refresh_token_expiry_days * 24 * 60:
            raise ValueError(
                "access_token_expiry_minutes must be shorter than refresh_token_expiry_days"
            )
        return self

    @model_validator(mode="after")
    def validate_d1_settings(self) -> "Settings":
        if self.db_type == "d1":
            missing = [
                name
                for name in ("d1_account_id", "d1_database_id", "d1_api_token")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"{', '.join(missing)} required when db_type=d1")
        return self


def load_settings(**overrides) -> Settings:
    """Load settings from the environment.

    Args:
        **overrides: Explicit values taking precedence over the environment.

    Returns:
        Validated Settings.

    Raises:
        ConfigurationError: If any required value is missing or invalid.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e
