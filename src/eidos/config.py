"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from EIDOS_-prefixed environment variables."""

    storage_path: str = "eidos.sqlite3"
    min_calibration_iterations: int = 3
    max_calibration_iterations: int = 12
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="EIDOS_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
