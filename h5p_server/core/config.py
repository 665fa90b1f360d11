from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# h5p_server/core/config.py -> BASE_DIR == repository root
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_LIBRARIES_PATH = BASE_DIR / "h5p" / "libraries"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
    )

    # Environment
    env: str = Field(default="dev", validation_alias="ENV")

    # Application
    api_name: str = Field(default="h5p-server", validation_alias="API_NAME")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Database & queue
    database_url: str = Field(
        default="sqlite+pysqlite:///./h5p.db",
        validation_alias="DATABASE_URL",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", validation_alias="REDIS_URL"
    )

    # Library storage
    library_storage: Literal["file", "sql"] = Field(
        default="file", validation_alias="LIBRARY_STORAGE"
    )
    libraries_path: str = Field(
        default=str(DEFAULT_LIBRARIES_PATH), validation_alias="LIBRARIES_PATH"
    )

    @field_validator("library_storage", mode="before")
    @classmethod
    def normalize_library_storage(cls, v: Any) -> str:
        if v is None:
            return "file"
        if not isinstance(v, str):
            raise TypeError("LIBRARY_STORAGE must be a string")
        s = v.strip().lower()
        if s not in {"file", "sql"}:
            raise ValueError("LIBRARY_STORAGE must be one of: file, sql")
        return s

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        return str(v or "INFO").strip().upper()

    # Workers
    worker_job_timeout_secs: int = Field(
        default=300, validation_alias="WORKER_JOB_TIMEOUT_SECS"
    )

    # OpenTelemetry
    otel_enabled: bool = Field(default=False, validation_alias="OTEL_ENABLED")
    otel_otlp_endpoint: str = Field(
        default="http://localhost:4318/v1/traces",
        validation_alias="OTEL_OTLP_ENDPOINT",
    )


settings = Settings()
