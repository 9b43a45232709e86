"""Application configuration."""
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_env: str = "development"
    app_debug: bool = True
    log_level: str = "DEBUG"

    # Database - required, read from the environment
    database_url: str = Field(
        ...,
        description="Database connection URL (required)",
    )
    db_pool_size: int = Field(
        default=20,
        description="DB connection pool size",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max overflow connections",
    )
    db_echo: bool = False

    # JWT
    jwt_secret_key: str = Field(
        ...,
        description="JWT secret key (required, minimum 32 characters)",
    )
    jwt_algorithm: str = "HS256"
    admin_token_expire_minutes: int = 60
    account_token_expire_minutes: int = 30

    # Ledger policy
    min_in_game_name_length: int = Field(
        default=3,
        description="Minimum length of the in-game name supplied on join",
    )
    room_reveal_lead_minutes: int = Field(
        default=5,
        description="Room credentials become visible this many minutes before start",
    )
    voucher_denominations: tuple[int, ...] = (20, 30, 50)

    # Optimistic concurrency
    conflict_retry_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts per operation before surfacing TRY_AGAIN",
    )
    conflict_retry_multiplier: float = 0.05
    conflict_retry_min_wait: float = 0.01
    conflict_retry_max_wait: float = 1.0
    commit_timeout_seconds: float = Field(
        default=10.0,
        description="Commit acknowledgement deadline; past it the outcome is unknown",
    )

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """Validate JWT secret key length."""
        if len(v) < 32:
            raise ValueError(
                "jwt_secret_key must be at least 32 characters long"
            )

        weak_patterns = [
            "change-this",
            "password",
            "12345",
            "qwerty",
        ]
        lower_v = v.lower()
        for pattern in weak_patterns:
            if pattern in lower_v:
                raise ValueError(
                    f"jwt_secret_key contains weak pattern '{pattern}'. "
                    "Use a strong, random secret key."
                )

        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production environment."""
        if self.app_env == "production" and self.app_debug:
            raise ValueError(
                "app_debug must be False in production environment"
            )
        return self

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
