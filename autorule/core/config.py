"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "AutoRule"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # LLM (OpenAI compatible)
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI compatible API base URL",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Model name used for matching and step interpretation",
    )
    openai_timeout: int = Field(
        default=30,
        description="API request timeout in seconds",
    )

    # Rule matching
    match_confidence_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for a rule to accept an event",
    )
    match_cache_seconds: int = Field(
        default=60,
        ge=0,
        description="TTL of cached match decisions (0 disables caching)",
    )

    # External action provider
    action_provider_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the tool execution service",
    )
    action_provider_api_key: str = Field(
        default="",
        description="API key sent to the tool execution service",
    )
    action_provider_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Tool execution request timeout in seconds",
    )

    # Shared secrets
    cron_secret: str = Field(
        default="",
        description="Bearer secret required by the scheduled-tick endpoint",
    )
    webhook_secret: str = Field(
        default="",
        description="Shared secret expected in x-webhook-secret (disabled when empty)",
    )

    # Scheduler
    scheduler_tick_seconds: int = Field(
        default=300,
        ge=10,
        description="Interval between scheduled-rule ticks in the worker",
    )
    scheduled_batch_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Wall time budget for one scheduled batch",
    )
    schedule_timezone: str = Field(
        default="UTC",
        description="IANA zone whose wall clock anchors daily and weekly runs",
    )

    # Output delivery
    output_max_retry: int = Field(
        default=3,
        ge=1,
        description="Maximum output delivery retry attempts",
    )

    # Execution log
    execution_log_retention_days: int = Field(
        default=30,
        ge=1,
        description="Days of execution log kept by the retention purge",
    )

    @field_validator("schedule_timezone")
    @classmethod
    def validate_schedule_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
