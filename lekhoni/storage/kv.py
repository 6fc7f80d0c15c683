"""Key-value media underneath the local store."""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import quote, unquote

from loguru import logger

from lekhoni.config.storage import StorageConfig

from .errors import LocalWriteError


class KeyValueStore(ABC):
    """String-valued persistent map with an explicit open/close lifecycle."""

    def open(self) -> None:
        """Prepare the medium; called once before first use."""

    def close(self) -> None:
        """Release the medium."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Persist ``value``; raises :class:`LocalWriteError` on failure."""

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        ...

    @abstractmethod
    def revision(self, key: str) -> int | None:
        """Opaque token that changes whenever ``key`` is written by anyone."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local medium used by tests and ephemeral runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._revisions: dict[str, int] = {key: 1 for key in self._data}
        self._clock = 1

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise LocalWriteError(f"Refusing to store non-string value under {key!r}")
        self._data[key] = value
        self._clock += 1
        self._revisions[key] = self._clock

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
        self._clock += 1
        self._revisions[key] = self._clock

    def keys(self) -> list[str]:
        return list(self._data)

    def revision(self, key: str) -> int | None:
        return self._revisions.get(key)


class FileKeyValueStore(KeyValueStore):
    """One JSON file per key inside ``directory``; writes replace files atomically."""

    suffix = ".json"

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def open(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LocalWriteError(f"Cannot create data directory {self.directory}: {exc}") from exc
        logger.debug("Local store directory ready at {}", self.directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.suffix}"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=self.suffix)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except (OSError, TypeError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise LocalWriteError(f"Failed to write {key!r} to {path}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise LocalWriteError(f"Failed to remove {key!r}: {exc}") from exc

    def keys(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(
            unquote(path.name[: -len(self.suffix)])
            for path in self.directory.glob(f"*{self.suffix}")
            if not path.name.startswith(".tmp-")
        )

    def revision(self, key: str) -> int | None:
        try:
            stat = self._path(key).stat()
        except FileNotFoundError:
            return None
        # replace() swaps the inode, so equal mtimes still yield a new revision
        return hash((stat.st_ino, stat.st_mtime_ns, stat.st_size))


def create_key_value_store(config: StorageConfig) -> KeyValueStore:
    """Instantiate the medium selected in configuration."""

    if config.backend == "memory":
        return MemoryKeyValueStore()
    return FileKeyValueStore(config.data_dir.expanduser())


__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "create_key_value_store",
]
