from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


def _split_csv(value: str) -> list[str]:
    value = value.strip().strip("\"'")
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    PROJECT_NAME: str = "Catalog Backend"
    API_V1_PREFIX: str = "/api/v1"

    DATABASE_URL: str
    REDIS_URL: Optional[str] = None

    JWT_SECRET_KEY: str
    JWT_REFRESH_SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24, ge=1)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=14, ge=1)

    # comma separated
    ADMIN_REGISTRATION_CODES: str = "TIENDA2024,MiTienda_Admin_2024#,CATALOGO_ADMIN_2024!"
    ADMIN_CODE_HINT_ENABLED: bool = True
    ADMIN_CODE_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    ADMIN_CODE_LOCKOUT_MINUTES: int = Field(default=30, ge=1)

    DEFAULT_ADMIN_USERNAME: Optional[str] = None
    DEFAULT_ADMIN_EMAIL: str = "admin@example.com"
    DEFAULT_ADMIN_PASSWORD: Optional[str] = None

    MEDIA_ROOT: str = "media"
    MAX_UPLOAD_SIZE_MB: int = Field(default=10, ge=1)

    CATALOG_CACHE_TTL_SECONDS: int = Field(default=60, ge=1)
    LOW_STOCK_THRESHOLD: int = Field(default=10, ge=0)

    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: Optional[str] = None
    ENVIRONMENT: str = "development"

    CORS_ORIGINS: str = "*"

    @property
    def admin_codes(self) -> list[str]:
        return _split_csv(self.ADMIN_REGISTRATION_CODES)

    @property
    def cors_origins(self) -> list[str]:
        return _split_csv(self.CORS_ORIGINS)

    @property
    def media_root_path(self) -> Path:
        path = Path(self.MEDIA_ROOT)
        if not path.is_absolute():
            path = BASE_DIR / path
        return path


load_dotenv(ENV_FILE)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()
