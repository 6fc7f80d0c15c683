"""Shared helpers for tests."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from lekhoni.config import AppConfig, MigrationConfig, RemoteConfig, SeedConfig, StorageConfig, WebConfig
from lekhoni.config.web import WebAuthConfig
from lekhoni.storage.capability import BackendCapability
from lekhoni.storage.facade import PersistenceFacade
from lekhoni.storage.kv import KeyValueStore, MemoryKeyValueStore
from lekhoni.storage.local import LocalStore
from lekhoni.storage.remote import RemoteStore

REMOTE = BackendCapability(True, "test remote")
LOCAL_ONLY = BackendCapability(False, "test local-only")


@contextmanager
def logger_to_stderr(level: str = "INFO") -> Iterator[None]:
    """Temporarily route Loguru output to stderr for assertion."""

    handler_id = logger.add(sys.stderr, level=level)
    try:
        yield
    finally:
        logger.remove(handler_id)


def make_facade(
    remote: RemoteStore | None = None,
    *,
    kv: KeyValueStore | None = None,
    key_prefix: str = "saadwrites",
) -> PersistenceFacade:
    local = LocalStore(kv or MemoryKeyValueStore(), key_prefix=key_prefix)
    return PersistenceFacade(local, remote, REMOTE if remote is not None else LOCAL_ONLY)


def make_app_config(
    base_dir: Path | None = None,
    *,
    seed: bool = False,
    migration: bool = True,
    admin_token: str | None = None,
) -> AppConfig:
    """Construct an AppConfig pinned to the local store for tests."""

    storage = (
        StorageConfig(backend="file", data_dir=base_dir / "data", watch_interval=0)
        if base_dir is not None
        else StorageConfig(backend="memory", watch_interval=0)
    )
    auth = WebAuthConfig(enabled=True, token=admin_token) if admin_token else None
    return AppConfig(
        storage=storage,
        remote=RemoteConfig(force_local=True),
        migration=MigrationConfig(enabled=migration),
        seed=SeedConfig(enabled=seed),
        web=WebConfig(auth=auth),
    )
