"""Shared helpers for CLI tests."""

from __future__ import annotations

from pathlib import Path

from lekhoni.config import StorageConfig
from lekhoni.storage.kv import FileKeyValueStore
from lekhoni.storage.local import LocalStore


def write_config(
    tmp_path: Path,
    *,
    seed: bool = False,
    assistant: str | None = None,
    extra: str = "",
) -> Path:
    """Write a local-only configuration backed by ``tmp_path/data``."""

    data_dir = (tmp_path / "data").as_posix()
    config_text = f"""
logging_level = "INFO"

[storage]
backend = "file"
data_dir = "{data_dir}"
watch_interval = 0

[remote]
force_local = true

[seed]
enabled = {"true" if seed else "false"}
"""
    if assistant is not None:
        config_text += f"""
[assistant]
name = "stub-model"
base_url = "{assistant}"
"""
    config_file = tmp_path / "config.toml"
    config_file.write_text(config_text + extra, encoding="utf-8")
    return config_file


def open_local_store(tmp_path: Path) -> LocalStore:
    """Open the file-backed store a CLI command wrote to, without starting a runtime."""

    config = StorageConfig(backend="file", data_dir=tmp_path / "data")
    store = LocalStore(FileKeyValueStore(config.data_dir), key_prefix=config.key_prefix)
    store.kv.open()
    return store
