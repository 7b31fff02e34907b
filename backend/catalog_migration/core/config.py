from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Catalog Migration Admin"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:5173"  # Comma-separated list

    # Catalog API (owns migration sessions and the legacy source connection)
    CATALOG_API_BASE_URL: str = "http://localhost:3000/api"
    CATALOG_API_TOKEN: str = ""
    CATALOG_API_TIMEOUT: float = 30.0

    @field_validator("CATALOG_API_BASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Paths are joined as '/migration/...', so drop a trailing slash."""
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    # Import tuning
    OFFICE_IMPORT_BATCH_SIZE: int = 50
    PRICE_GUIDE_IMPORT_BATCH_SIZE: int = 100
    PROGRESS_TICK_SECONDS: float = 1.0

    # Sentry (error tracking)
    SENTRY_DSN: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
