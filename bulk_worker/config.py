"""
Configuration settings for the bulk worker.

Uses Pydantic Settings to load environment variables for the database
connection, the cycle schedule, retry policy, bulk transfer mode, export
targets, and logging.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# libpq rejects statements with more bind parameters than this.
MAX_BIND_PARAMETERS = 65535
# Five parameters per inserted row (id, name, email, created_date, is_active).
MAX_BULK_CHUNK_SIZE = MAX_BIND_PARAMETERS // 5


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("bulk_worker", alias="DB_NAME")
    db_connect_timeout_seconds: int = Field(10, alias="DB_CONNECT_TIMEOUT_SECONDS")
    db_statement_timeout_ms: int = Field(30_000, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(2, alias="DB_POOL_MAX_SIZE")
    db_pool_timeout_seconds: float = Field(30.0, alias="DB_POOL_TIMEOUT_SECONDS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Cycle
    cycle_period_seconds: float = Field(10.0, gt=0, alias="CYCLE_PERIOD_SECONDS")
    read_limit: int = Field(100, ge=0, alias="READ_LIMIT")
    batch_size: int = Field(1000, ge=0, alias="BATCH_SIZE")
    name_suffix: str = Field(" Updated", alias="NAME_SUFFIX")
    timing_diagnostics: bool = Field(False, alias="TIMING_DIAGNOSTICS")

    # Retry
    retry_max_retries: int = Field(3, ge=0, alias="RETRY_MAX_RETRIES")
    retry_delay_seconds: float = Field(2.0, ge=0, alias="RETRY_DELAY_SECONDS")

    # Bulk transfer
    bulk_mode: Literal["copy", "chunked"] = Field("copy", alias="BULK_MODE")
    bulk_chunk_size: int = Field(500, gt=0, le=MAX_BULK_CHUNK_SIZE, alias="BULK_CHUNK_SIZE")

    # Exports
    export_csv_path: Path = Field(Path("exports/users.csv"), alias="EXPORT_CSV_PATH")
    export_json_path: Path = Field(Path("exports/users.json"), alias="EXPORT_JSON_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["MAX_BIND_PARAMETERS", "MAX_BULK_CHUNK_SIZE", "Settings", "get_settings"]
