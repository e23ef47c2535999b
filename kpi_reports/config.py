from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List, Optional

from kpi_reports.core.config import (
    OPENAI_MODEL,
    OPENAI_TEMPERATURE,
    PROCESSOR_BATCH_SIZE,
    DEFAULT_MAX_RETRIES,
    REPORTS_COLLECTION,
)

class Settings(BaseSettings):
    # Basic environment settings
    ENVIRONMENT: str = Field("development")
    HOST: str = Field("0.0.0.0")
    PORT: int = Field(8000)

    # CORS settings: Allowed origins should be provided as a comma-separated list in the env var.
    ALLOWED_ORIGINS: str = Field("http://localhost,http://127.0.0.1")

    # Logging configuration
    LOG_LEVEL: str = Field("INFO")
    LOG_FILE_PATH: Optional[str] = Field(None)

    # Completion provider settings
    OPENAI_API_KEY: Optional[str] = Field(None)
    OPENAI_MODEL: str = Field(OPENAI_MODEL)
    OPENAI_TEMPERATURE: float = Field(OPENAI_TEMPERATURE)
    OPENAI_TIMEOUT: float = Field(120.0)

    # Report job processing settings
    REPORTS_COLLECTION: str = Field(REPORTS_COLLECTION)
    PROCESSOR_BATCH_SIZE: int = Field(PROCESSOR_BATCH_SIZE)
    DEFAULT_MAX_RETRIES: int = Field(DEFAULT_MAX_RETRIES)
    # 0 disables the in-process scheduled processor loop
    PROCESSOR_INTERVAL_SECONDS: float = Field(0)
    STATUS_CACHE_TTL: int = Field(3600)
    STATUS_CACHE_SIZE: int = Field(1024)

    @field_validator("PROCESSOR_BATCH_SIZE", "DEFAULT_MAX_RETRIES", mode="after")
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

def get_settings() -> Settings:
    """Build the settings object; called once when the application context is created."""
    return Settings()
