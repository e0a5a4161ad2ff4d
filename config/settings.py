"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


# Substrings that mark a Supabase URL copied from the example .env
PLACEHOLDER_MARKERS = ("your-project", "your_supabase", "placeholder")


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        default="",
        description="Supabase project URL (empty = in-memory demo backend)"
    )
    supabase_key: str = Field(
        default="",
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # STORAGE BUCKETS
    # ===================
    templates_bucket: str = Field(
        default="templates",
        description="Bucket holding operator output templates"
    )
    output_files_bucket: str = Field(
        default="output-files",
        description="Bucket holding generated output files"
    )

    # ===================
    # RECONCILIATION
    # ===================
    header_scan_rows: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Rows scanned from the top of a sheet when looking for the header"
    )
    upload_history_keep: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Completed uploads kept per operator; older ones are pruned"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        description="Origins allowed by the CORS middleware"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def supabase_configured(self) -> bool:
        """True only for a real, non-placeholder Supabase project URL."""
        url = self.supabase_url.strip()
        if not url.startswith("https://") or not self.supabase_key:
            return False
        return not any(marker in url for marker in PLACEHOLDER_MARKERS)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
