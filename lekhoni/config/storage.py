"""Persistence configuration models."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator

from lekhoni.config.base import BaseConfig


class StorageConfig(BaseConfig):
    """Settings for the local persisted store."""

    backend: Literal["file", "memory"] = Field(
        "file",
        description="Key-value medium backing the local store",
    )
    data_dir: Path = Field(
        Path("./data"),
        description="Directory holding one JSON file per storage key (file backend)",
    )
    key_prefix: str = Field(
        "saadwrites",
        min_length=1,
        description="Prefix applied to every storage key",
    )
    watch_interval: float = Field(
        1.0,
        ge=0.0,
        description="Seconds between cross-process change polls; 0 disables watching",
    )

    @field_validator("key_prefix")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        stripped = value.strip().rstrip("_")
        if not stripped:
            raise ValueError("key_prefix must not be blank")
        return stripped


class RemoteConfig(BaseConfig):
    """Settings for the cloud document store."""

    project_id: str = Field(
        "your-project-id",
        description="Firestore project identifier or 'env:VAR_NAME' reference",
    )
    credentials_file: Path | None = Field(
        None,
        description="Service account JSON; application default credentials when unset",
    )
    force_local: bool = Field(
        False,
        description="Deployment override that pins every operation to the local store",
    )
    articles_collection: str = Field("articles", min_length=1)
    settings_collection: str = Field("settings", min_length=1)
    settings_document: str = Field("site", min_length=1)
    subscribers_collection: str = Field("subscribers", min_length=1)
    messages_collection: str = Field("messages", min_length=1)


class MigrationConfig(BaseConfig):
    """Settings for the one-shot legacy migration."""

    enabled: bool = Field(True, description="Whether legacy local data is copied to the remote store")
    legacy_key: str = Field(
        "lekhoni_articles",
        min_length=1,
        description="Storage key (without prefix) holding the legacy article list",
    )


class SeedConfig(BaseConfig):
    """Settings for sample content reconciliation."""

    enabled: bool = Field(True, description="Whether sample articles are kept present")
    catalog_path: Path | None = Field(
        None,
        description="Optional JSON file with the sample catalog; built-in samples when unset",
    )


__all__ = ["StorageConfig", "RemoteConfig", "MigrationConfig", "SeedConfig"]
