from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    ENVIRONMENT: str = "development"
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]
    API_PREFIX: str = "/api/apptweak"
    API_TITLE: str = "AppTweak Export API"
    API_DESCRIPTION: str = "Metadata export proxy for the AppTweak public API"

    # Features
    ENABLE_DOCS: bool = True
    ENABLE_REDOC: bool = True

    # Upstream (AppTweak)
    APPTWEAK_API_BASE_URL: str = "https://public-api.apptweak.com/api/public"
    API_KEY_HEADER: str = "x-apptweak-key"
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0

    # Export Settings
    MAX_EXPORT_APPS: int = 10  # 0 disables the bound
    ARCHIVE_PREFIX: str = "apptweak_selective"
    ARCHIVE_COMPRESSION_LEVEL: int = 9
    ICON_FAILURE_DIAGNOSTIC: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # Monitoring
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
