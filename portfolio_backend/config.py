"""
Configuration and settings for the portfolio backend.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    environment: str = Field(
        default="production",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:5000",
            "http://localhost:5001",
            "http://localhost:5002",
            "http://localhost:5173",
        ]
    )

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Local record store (any SQLAlchemy URL; SQLite file by default)
    data_dir: str = Field(default="data")
    database_url: Optional[str] = Field(default=None)

    # Firebase Admin
    firebase_credentials_path: Optional[str] = Field(default=None)
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_client_email: Optional[str] = Field(default=None)
    firebase_private_key: Optional[str] = Field(default=None)
    firebase_database_url: Optional[str] = Field(default=None)
    firebase_web_api_key: Optional[str] = Field(default=None)

    # Cloudinary
    cloudinary_cloud_name: Optional[str] = Field(default=None)
    cloudinary_api_key: Optional[str] = Field(default=None)
    cloudinary_api_secret: Optional[str] = Field(default=None)

    # ImageKit
    imagekit_public_key: Optional[str] = Field(default=None)
    imagekit_private_key: Optional[str] = Field(default=None)
    imagekit_url_endpoint: Optional[str] = Field(default=None)

    # Auth
    # Unset means locally issued tokens are neither signed nor accepted.
    jwt_secret: Optional[str] = Field(default=None)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_minutes: int = Field(default=240)
    admin_emails: list[str] = Field(default_factory=list)

    # Cache / queue (Redis)
    redis_url: Optional[str] = Field(default=None)
    cache_key_prefix: str = Field(default="portfolio:")
    cache_default_ttl_seconds: int = Field(default=3600)
    notification_queue_key: str = Field(default="portfolio:notifications")

    # Mail
    smtp_host: Optional[str] = Field(default=None)
    smtp_port: int = Field(default=587)
    smtp_user: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SMTP_PASSWORD", "SMTP_PASS"),
    )
    smtp_use_tls: bool = Field(default=True)
    contact_email: Optional[str] = Field(default=None)
    send_auto_reply: bool = Field(default=False)
    site_name: str = Field(default="Portfolio Owner")

    @field_validator("firebase_private_key")
    @classmethod
    def _unescape_private_key(cls, value: Optional[str]) -> Optional[str]:
        # Keys pasted into env files carry literal "\n" sequences.
        if value:
            return value.replace("\\n", "\n")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def local_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        os.makedirs(self.data_dir, exist_ok=True)
        return f"sqlite+pysqlite:///{os.path.join(self.data_dir, 'portfolio.db')}"

    @property
    def firebase_configured(self) -> bool:
        has_credentials = bool(self.firebase_credentials_path) or bool(
            self.firebase_client_email and self.firebase_private_key
        )
        return has_credentials and bool(self.firebase_database_url)

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    @property
    def imagekit_configured(self) -> bool:
        return bool(
            self.imagekit_public_key
            and self.imagekit_private_key
            and self.imagekit_url_endpoint
        )

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
