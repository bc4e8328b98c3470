"""
Configuration settings for neutrondb.

Uses Pydantic Settings to load environment variables for the database
connection, migration layout, and logging. The backend is chosen once from
`DB_CONNECTION`; everything downstream only sees a `Connection`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_connection: str = Field("sqlite", alias="DB_CONNECTION")
    db_database: str = Field("database/neutron.sqlite", alias="DB_DATABASE")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: Optional[int] = Field(None, alias="DB_PORT")
    db_username: Optional[str] = Field(None, alias="DB_USERNAME")
    db_password: Optional[str] = Field(None, alias="DB_PASSWORD")
    db_connect_attempts: int = Field(3, alias="DB_CONNECT_ATTEMPTS", ge=1)

    # Migrations and scaffolding
    migrations_path: str = Field("migrations", alias="MIGRATIONS_PATH")
    migrations_table: str = Field("migrations", alias="MIGRATIONS_TABLE")
    models_path: str = Field("models", alias="MODELS_PATH")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    migration_log_file: Optional[str] = Field("logs/migrations.log", alias="MIGRATION_LOG_FILE")

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


__all__ = ["Settings", "get_settings"]
