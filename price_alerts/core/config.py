"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator, field_validator
from typing import Optional


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

VALID_NOTIFIER_BACKENDS = ['log', 'telegram']


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/price_alerts.db"

    # Redis (redis_url should contain full connection string including port)
    redis_url: str = "redis://localhost:6379/0"

    # Quote source
    alpaca_api_key_id: str = ""
    alpaca_api_secret: str = ""
    alpaca_data_url: str = "https://data.alpaca.markets"
    quote_batch_size: int = 100

    # Evaluation cadence (seconds)
    evaluation_interval_seconds: int = 10
    cooldown_seconds: int = 300
    lock_ttl_seconds: Optional[int] = None  # Defaults to 2x the evaluation interval
    lock_key: str = "alert-evaluator"
    price_cache_max_age_seconds: Optional[int] = None  # Defaults to 3x the evaluation interval

    # Timeouts for external calls, must stay below the lock TTL
    quote_timeout_seconds: float = 8.0
    store_timeout_seconds: float = 5.0

    # Notifications
    notifier_backend: str = "log"
    telegram_bot_token: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @field_validator('notifier_backend')
    @classmethod
    def validate_notifier_backend(cls, v: str) -> str:
        """Validate the notification transport name."""
        lower_v = v.lower()
        if lower_v not in VALID_NOTIFIER_BACKENDS:
            raise ValueError(f"notifier_backend must be one of {VALID_NOTIFIER_BACKENDS}")
        return lower_v

    @field_validator('evaluation_interval_seconds', 'cooldown_seconds', 'quote_batch_size')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @property
    def effective_lock_ttl_seconds(self) -> int:
        """Lock TTL, falling back to twice the evaluation interval."""
        if self.lock_ttl_seconds is not None:
            return self.lock_ttl_seconds
        return self.evaluation_interval_seconds * 2

    @property
    def effective_price_cache_max_age_seconds(self) -> int:
        """Maximum age of a cached prior price before it is ignored."""
        if self.price_cache_max_age_seconds is not None:
            return self.price_cache_max_age_seconds
        return self.evaluation_interval_seconds * 3

    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Validate configuration after all fields are set."""
        lock_ttl = self.effective_lock_ttl_seconds
        if lock_ttl <= 0:
            raise ValueError("lock_ttl_seconds must be positive")

        # A stuck dependency must not hold the lock past its TTL
        if self.quote_timeout_seconds >= lock_ttl:
            raise ValueError(
                f"quote_timeout_seconds ({self.quote_timeout_seconds}) must be shorter "
                f"than the lock TTL ({lock_ttl}s)"
            )
        if self.store_timeout_seconds >= lock_ttl:
            raise ValueError(
                f"store_timeout_seconds ({self.store_timeout_seconds}) must be shorter "
                f"than the lock TTL ({lock_ttl}s)"
            )

        if self.notifier_backend == "telegram" and not self.telegram_bot_token:
            raise ValueError("telegram_bot_token is required when notifier_backend is 'telegram'")
        return self


# Global settings instance
settings = Settings()
