"""
Application configuration management using Pydantic Settings.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    APP_NAME: str = "Gatehouse"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")

    # API
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Gatehouse API"
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"]
    )

    # Security
    SECRET_KEY: str = Field(default="development-secret-key-change-me-please", min_length=32)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Service credentials (X-API-Key)
    INTERNAL_API_KEY: Optional[str] = None
    PARTNER_API_KEY: Optional[str] = None

    # Backing store
    STORE_BACKEND: str = Field(default="memory", pattern="^(memory|redis)$")
    STORE_KEY_PREFIX: str = "gatehouse"
    STORE_MAX_RETRIES: int = 25

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_URL: Optional[RedisDsn] = Field(default=None, validate_default=True)
    REDIS_MAX_CONNECTIONS: int = 50

    # External group-membership service
    MEMBERSHIP_API_URL: str = "https://groups.roblox.com"
    MEMBERSHIP_THUMBNAILS_URL: str = "https://thumbnails.roblox.com"
    MEMBERSHIP_TIMEOUT_SECONDS: float = 5.0
    MAIN_GROUP_ID: str = "5692925"

    # Department policy, highest priority first
    DEPARTMENT_HIERARCHY: List[str] = Field(
        default=[
            "corporate",
            "moderation",
            "public-relations",
            "talent-acquisition",
            "hr",
            "mr",
            "lr",
        ]
    )

    # Automated form evaluation
    AUTO_APPROVE_THRESHOLD: int = Field(default=85, ge=0, le=100)
    AUTO_REJECT_THRESHOLD: int = Field(default=40, ge=0, le=100)

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_connection(cls, v: Optional[str], info) -> str:
        if v:
            return v
        values = info.data
        host = values.get("REDIS_HOST", "localhost")
        port = values.get("REDIS_PORT", 6379)
        db = values.get("REDIS_DB", 0)
        password = values.get("REDIS_PASSWORD")
        if password:
            return f"redis://:{password}@{host}:{port}/{db}"
        return f"redis://{host}:{port}/{db}"

    @field_validator("BACKEND_CORS_ORIGINS", "DEPARTMENT_HIERARCHY", mode="before")
    @classmethod
    def split_comma_separated(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()


# Create a settings instance for easy import
settings = get_settings()
