"""
Settings Module - Centralized Configuration Management
=======================================================

ARCHITECTURAL DECISION:
- All configuration is loaded from environment variables (no hardcoded secrets)
- Settings are immutable dataclasses grouped per external service
- Single source of truth for all configurable values

EXTENSIBILITY:
- To add a storage provider: add its credentials to StorageSettings
- To switch image model endpoint: change OpenAISettings.api_base
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file if present (development convenience)
load_dotenv()

DEFAULT_SECRET_KEY = "snefuru-dev-secret-change-me"


@dataclass(frozen=True)
class OpenAISettings:
    """OpenAI settings shared by image generation and chat."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    api_base: str = field(
        default_factory=lambda: os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
    )

    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"
    image_quality: str = "standard"

    chat_models: tuple = ("gpt-4o", "gpt-4", "gpt-3.5-turbo")
    default_chat_model: str = "gpt-4o"
    chat_max_tokens: int = 4000
    chat_temperature: float = 0.7

    # Image generation is slow; chat less so
    image_timeout_seconds: int = 120
    chat_timeout_seconds: int = 60


@dataclass(frozen=True)
class StorageSettings:
    """Credentials for the cloud storage providers."""

    # Amazon S3 - access keys are read by boto3 from the usual AWS_* variables
    s3_bucket: str = field(default_factory=lambda: os.getenv("AWS_S3_BUCKET", ""))
    s3_region: str = field(default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"))
    s3_prefix: str = field(default_factory=lambda: os.getenv("AWS_S3_PREFIX", ""))

    dropbox_access_token: str = field(default_factory=lambda: os.getenv("DROPBOX_ACCESS_TOKEN", ""))
    dropbox_folder: str = field(default_factory=lambda: os.getenv("DROPBOX_FOLDER", "/snefuru"))

    gdrive_client_id: str = field(default_factory=lambda: os.getenv("GOOGLE_DRIVE_CLIENT_ID", ""))
    gdrive_client_secret: str = field(default_factory=lambda: os.getenv("GOOGLE_DRIVE_CLIENT_SECRET", ""))
    gdrive_refresh_token: str = field(default_factory=lambda: os.getenv("GOOGLE_DRIVE_REFRESH_TOKEN", ""))
    gdrive_folder_id: str = field(default_factory=lambda: os.getenv("GOOGLE_DRIVE_FOLDER_ID", ""))

    timeout_seconds: int = 60


@dataclass(frozen=True)
class AuthSettings:
    """Session token settings."""

    secret_key: str = field(
        default_factory=lambda: os.getenv("SNEFURU_SECRET_KEY", DEFAULT_SECRET_KEY)
    )
    algorithm: str = "HS256"
    token_expire_hours: int = 24
    remember_me_expire_days: int = 30

    # PBKDF2 parameters
    hash_iterations: int = 10000
    hash_key_length: int = 64
    salt_bytes: int = 16


@dataclass(frozen=True)
class ScraperSettings:
    """ScraperAPI settings for fetching ranking pages."""

    api_key: str = field(default_factory=lambda: os.getenv("SCRAPERAPI_KEY", ""))
    api_url: str = "https://api.scraperapi.com/"
    timeout_seconds: int = 30


@dataclass(frozen=True)
class Settings:
    """
    Root settings container - Single source of truth for all configuration.

    Usage:
        from snefuru.infrastructure.config import get_settings
        settings = get_settings()
        print(settings.openai.api_key)
    """

    # Sub-settings groups
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    scraper: ScraperSettings = field(default_factory=ScraperSettings)

    # File paths
    database_file: Path = field(
        default_factory=lambda: Path(os.getenv("SNEFURU_DATABASE", "snefuru.db"))
    )

    # Upload limits
    max_upload_bytes: int = 50 * 1024 * 1024

    def validate(self) -> list[str]:
        """
        Validate settings and return list of warnings/errors.
        Returns empty list if all settings are valid.
        """
        issues = []

        if not self.openai.api_key:
            issues.append(
                "WARNING: OPENAI_API_KEY not set. "
                "OpenAI image generation and chat will be unavailable."
            )

        if self.auth.secret_key == DEFAULT_SECRET_KEY:
            issues.append(
                "WARNING: SNEFURU_SECRET_KEY not set. "
                "Session tokens are signed with a development key."
            )

        if not (self.storage.s3_bucket or self.storage.dropbox_access_token
                or self.storage.gdrive_refresh_token):
            issues.append(
                "WARNING: No cloud storage credentials configured. "
                "Generated images cannot be uploaded."
            )

        return issues


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get singleton Settings instance.
    Cached to ensure consistent settings throughout application lifecycle.
    """
    return Settings()
