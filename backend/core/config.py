"""
Centralized configuration management with validation.

All environment variables are loaded and validated here so the API layer
and the scanner pipeline read the same values.
"""
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Environment
    # Only "development" exposes exception details in error responses.
    ENVIRONMENT: str = Field(default="production")

    # Service identity (reported by /health)
    SERVICE_NAME: str = Field(default="GFaaS API")
    SERVICE_VERSION: str = Field(default="1.0.0")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Repository retrieval
    FORGE_HOST: str = Field(default="github.com")
    CLONE_DEPTH: int = Field(default=50, ge=1)
    # Private repository access. Never logged.
    GITHUB_TOKEN: Optional[str] = Field(default=None)

    # Scan engine
    SCANNER_BACKEND: Literal["docker", "binary"] = Field(default="docker")
    DOCKER_BINARY: str = Field(default="docker")
    GITLEAKS_IMAGE: str = Field(default="zricethez/gitleaks:latest")
    GITLEAKS_BINARY: str = Field(default="gitleaks")
    SCAN_ENGINE_NAME: str = Field(default="Gitleaks")
    SCAN_ENGINE_VERSION: str = Field(default="8.18.0")
    SCAN_TIMEOUT_SECONDS: float = Field(default=60, gt=0)

    # Per-request scratch directories
    WORKSPACE_PREFIX: str = Field(default="secretsniffer-")
    WORKSPACE_ROOT: Optional[str] = Field(default=None)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency; override in tests via app.dependency_overrides."""
    return settings
