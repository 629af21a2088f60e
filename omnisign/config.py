import os

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

ENTRY_POINT_V07_ADDRESS = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.api_key:
            fallback = os.getenv("OB_API_KEY") or os.getenv("API_KEY")
            if fallback:
                object.__setattr__(self, "api_key", fallback)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="auto",
        description="json, console, or auto (console at DEBUG, JSON otherwise)",
    )

    # Quote service
    api_base_url: str = Field(
        default="https://be.onebalance.io",
        description="Base URL of the quote/status service",
        validation_alias=AliasChoices("api_base_url", "onebalance_api_base_url"),
    )
    api_key: str = Field(
        default="",
        description="API key sent as x-api-key",
        validation_alias=AliasChoices("api_key", "onebalance_api_key"),
    )
    request_timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    history_default_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Default number of transactions returned by history queries",
    )

    # ERC-4337
    entry_point_address: str = Field(
        default=ENTRY_POINT_V07_ADDRESS,
        description="EntryPoint contract used for UserOperation hashing",
    )
    entry_point_version: str = Field(default="0.7", description="EntryPoint version")

    # Completion monitoring
    monitor_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between execution status queries",
    )
    monitor_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Overall monitoring deadline in seconds",
    )
    monitor_max_retries: int = Field(
        default=3,
        ge=1,
        description="Monitoring attempts made by wait_for_transaction",
    )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


# Global settings instance
settings = Settings()
