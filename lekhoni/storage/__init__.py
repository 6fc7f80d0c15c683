"""Local and remote stores plus the facade that routes between them."""

from .capability import BackendCapability, detect_backend, is_remote_available, reset_capability_cache
from .errors import (
    LocalWriteError,
    RemoteStoreError,
    RemoteSubscribeError,
    RemoteWriteError,
    StorageError,
)
from .events import Channel, EventBus, Subscription
from .facade import PersistenceFacade, WriteOutcome, WritePolicy, WriteReceipt
from .kv import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore, create_key_value_store
from .local import Draft, LocalStore
from .remote import RemoteStore

__all__ = [
    "BackendCapability",
    "Channel",
    "Draft",
    "EventBus",
    "FileKeyValueStore",
    "KeyValueStore",
    "LocalStore",
    "LocalWriteError",
    "MemoryKeyValueStore",
    "PersistenceFacade",
    "RemoteStore",
    "RemoteStoreError",
    "RemoteSubscribeError",
    "RemoteWriteError",
    "StorageError",
    "Subscription",
    "WriteOutcome",
    "WritePolicy",
    "WriteReceipt",
    "create_key_value_store",
    "detect_backend",
    "is_remote_available",
    "reset_capability_cache",
]
