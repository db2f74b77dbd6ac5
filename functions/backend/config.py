"""
Configuration and settings for the Vida Tea functions.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the Cloud Functions."""

    model_config = SettingsConfigDict(
        env_file=".env.vida-tea", env_file_encoding="utf-8", extra="ignore"
    )

    node_env: str = Field(default="production")

    # CORS
    allowed_origins: list[str] = Field(
        default=[
            "https://vita-tea.com",
            "https://www.vita-tea.com",
            "https://vida-tea.web.app",
            "https://vida-tea.firebaseapp.com",
            "https://admin.vita-tea.com",
        ]
    )
    development_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5000",
            "http://localhost:5173",
        ]
    )

    # Public Firebase web config served to the storefront
    firebase_api_key: Optional[str] = Field(default=None)
    firebase_auth_domain: str = Field(default="vida-tea.firebaseapp.com")
    firebase_project_id: str = Field(default="vida-tea")
    firebase_storage_bucket: str = Field(default="vida-tea.firebasestorage.app")
    firebase_messaging_sender_id: Optional[str] = Field(default=None)
    firebase_app_id: Optional[str] = Field(default=None)
    firebase_measurement_id: Optional[str] = Field(default=None)

    # Orders and inventory
    order_number_prefix: str = Field(default="VT")
    conflict_retry_attempts: int = Field(default=5, ge=1)
    cart_expiry_days: int = Field(default=7, ge=1)

    # Request limits
    max_analytics_events: int = Field(default=100, ge=1)
    profile_update_min_interval_seconds: int = Field(default=60, ge=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"

    @property
    def cors_origins(self) -> list[str]:
        if self.is_development:
            return self.allowed_origins + self.development_origins
        return list(self.allowed_origins)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
