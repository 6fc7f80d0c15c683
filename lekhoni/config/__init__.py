"""Configuration namespace for lekhoni."""

from __future__ import annotations

from .app import AppConfig
from .base import BaseConfig, load_config
from .llm import LLMConfig
from .storage import MigrationConfig, RemoteConfig, SeedConfig, StorageConfig
from .utils import is_placeholder, resolve_env_reference
from .web import WebAuthConfig, WebConfig

__all__ = [
    "BaseConfig",
    "AppConfig",
    "load_config",
    "LLMConfig",
    "MigrationConfig",
    "RemoteConfig",
    "SeedConfig",
    "StorageConfig",
    "WebAuthConfig",
    "WebConfig",
    "is_placeholder",
    "resolve_env_reference",
]
