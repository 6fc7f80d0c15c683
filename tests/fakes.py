"""In-memory stand-ins for the remote document store and the key-value medium."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from lekhoni.storage.errors import LocalWriteError, RemoteSubscribeError, RemoteWriteError
from lekhoni.storage.events import Subscription
from lekhoni.storage.kv import MemoryKeyValueStore
from lekhoni.storage.remote import CollectionCallback, DocumentCallback, ErrorCallback, RemoteStore


@dataclass(eq=False)
class _Watcher:
    target: tuple[str, str | None]
    on_change: Callable[[Any], None]
    on_error: ErrorCallback
    handle: Subscription = field(default_factory=Subscription)


class FakeRemoteStore(RemoteStore):
    """Remote store with merge-write semantics, synchronous deliveries and failure switches."""

    def __init__(self, collections: Mapping[str, list[dict[str, Any]]] | None = None) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        for name, documents in (collections or {}).items():
            self.collections[name] = {document["id"]: dict(document) for document in documents}
        self.fail_writes = False
        self.fail_ids: set[str] = set()
        self.refuse_subscriptions = False
        self.fail_on_subscribe = False
        self.writes: list[tuple[str, str, str]] = []
        self._watchers: list[_Watcher] = []
        self.opened = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        for watcher in list(self._watchers):
            watcher.handle.cancel()
        self.opened = False

    # ------------------------------------------------------------------
    def documents(self, name: str) -> list[dict[str, Any]]:
        stored = list(self.collections.get(name, {}).values())
        return sorted(stored, key=lambda document: document.get("createdAt", 0), reverse=True)

    def get(self, name: str, document_id: str) -> dict[str, Any] | None:
        document = self.collections.get(name, {}).get(document_id)
        return dict(document) if document is not None else None

    def active_watchers(self, name: str | None = None) -> int:
        return sum(
            1
            for watcher in self._watchers
            if not watcher.handle.cancelled and (name is None or watcher.target[0] == name)
        )

    def _payload(self, watcher: _Watcher) -> Any:
        name, document_id = watcher.target
        if document_id is None:
            return [dict(document) for document in self.documents(name)]
        document = self.get(name, document_id)
        return {"id": document_id, **document} if document is not None else None

    def _deliver(self, name: str) -> None:
        for watcher in list(self._watchers):
            if watcher.target[0] == name and not watcher.handle.cancelled:
                watcher.on_change(self._payload(watcher))

    def _register(self, target: tuple[str, str | None], on_change: Any, on_error: ErrorCallback) -> Subscription:
        if self.refuse_subscriptions:
            raise RemoteSubscribeError(f"subscription to {target[0]} refused")
        watcher = _Watcher(target, on_change, on_error)
        watcher.handle = Subscription(lambda: self._forget(watcher))
        self._watchers.append(watcher)
        on_change(self._payload(watcher))
        if self.fail_on_subscribe:
            self._watchers.remove(watcher)
            on_error(RemoteSubscribeError(f"subscription to {target[0]} failed while opening"))
        return watcher.handle

    def _forget(self, watcher: _Watcher) -> None:
        if watcher in self._watchers:
            self._watchers.remove(watcher)

    def terminate(self, name: str) -> None:
        """Fail every live subscription on ``name`` the way a dropped connection would."""

        for watcher in list(self._watchers):
            if watcher.target[0] == name and not watcher.handle.cancelled:
                self._watchers.remove(watcher)
                watcher.on_error(RemoteSubscribeError(f"subscription to {name} terminated"))

    # ------------------------------------------------------------------
    def subscribe_collection(
        self,
        name: str,
        on_change: CollectionCallback,
        on_error: ErrorCallback,
        *,
        order_by: str = "createdAt",
        descending: bool = True,
    ) -> Subscription:
        return self._register((name, None), on_change, on_error)

    def subscribe_document(
        self,
        collection: str,
        document_id: str,
        on_change: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        return self._register((collection, document_id), on_change, on_error)

    async def upsert_document(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        if self.fail_writes or document_id in self.fail_ids:
            raise RemoteWriteError(f"write to {collection}/{document_id} failed")
        stored = self.collections.setdefault(collection, {})
        stored[document_id] = {**stored.get(document_id, {}), **dict(data)}
        self.writes.append(("upsert", collection, document_id))
        self._deliver(collection)

    async def delete_document(self, collection: str, document_id: str) -> None:
        if self.fail_writes or document_id in self.fail_ids:
            raise RemoteWriteError(f"delete of {collection}/{document_id} failed")
        self.collections.get(collection, {}).pop(document_id, None)
        self.writes.append(("delete", collection, document_id))
        self._deliver(collection)


class FailingKeyValueStore(MemoryKeyValueStore):
    """Memory medium whose writes can be switched to fail like a full disk."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        super().__init__(initial)
        self.fail = False

    def set(self, key: str, value: str) -> None:
        if self.fail:
            raise LocalWriteError(f"quota exceeded while writing {key!r}")
        super().set(key, value)
