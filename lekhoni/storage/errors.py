"""Exception hierarchy for the persistence layer."""

from __future__ import annotations


class StorageError(RuntimeError):
    """Base class for persistence failures."""


class LocalWriteError(StorageError):
    """Raised when the local store cannot persist a value (disk full, bad payload)."""


class RemoteStoreError(StorageError):
    """Base class for failures reported by the remote document store."""


class RemoteWriteError(RemoteStoreError):
    """Raised per call when a remote write or delete fails."""


class RemoteSubscribeError(RemoteStoreError):
    """Reported through ``on_error`` when a live remote subscription terminates."""


__all__ = [
    "StorageError",
    "LocalWriteError",
    "RemoteStoreError",
    "RemoteWriteError",
    "RemoteSubscribeError",
]
