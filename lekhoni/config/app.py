"""Application-level configuration models."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field

from lekhoni.config.base import BaseConfig
from lekhoni.config.llm import LLMConfig
from lekhoni.config.storage import MigrationConfig, RemoteConfig, SeedConfig, StorageConfig
from lekhoni.config.web import WebConfig


class AppConfig(BaseConfig):
    """Top-level runtime configuration for the entire application."""

    logging_level: str = Field("INFO", description="Log level: DEBUG, INFO, WARNING, ERROR")
    log_file: Path | None = Field(None, description="Optional rotating log file")

    storage: StorageConfig = Field(default_factory=StorageConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    migration: MigrationConfig = Field(default_factory=MigrationConfig)
    seed: SeedConfig = Field(default_factory=SeedConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    assistant: LLMConfig | None = Field(None, description="Writing assistant endpoint")


__all__ = ["AppConfig"]
