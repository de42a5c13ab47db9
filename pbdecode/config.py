"""
Configuration settings for pbdecode.

Uses Pydantic Settings to load environment variables (and an optional .env
file) for the schema location, pipeline sizing, sink selection and logging.
CLI options override whatever is set here.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Schema
    descriptor_set: Optional[str] = Field(None, alias="PBDECODE_DESCRIPTOR_SET")
    message_name: Optional[str] = Field(None, alias="PBDECODE_MESSAGE_NAME")

    # Pipeline
    workers: int = Field(10, alias="PBDECODE_WORKERS")
    queue_factor: int = Field(2, alias="PBDECODE_QUEUE_FACTOR")
    field_list: str = Field("data", alias="PBDECODE_FIELDS")
    payload_field: str = Field("data", alias="PBDECODE_PAYLOAD_FIELD")

    # Sinks
    writer: str = Field("console", alias="PBDECODE_WRITER")
    marshaler: str = Field("json", alias="PBDECODE_MARSHALER")

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def field_names(self) -> List[str]:
        return split_fields(self.field_list)


def split_fields(fields: str) -> List[str]:
    """Split a comma separated field list, keeping empty entries for validation."""
    return [name.strip() for name in fields.split(",")]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings", "split_fields"]
