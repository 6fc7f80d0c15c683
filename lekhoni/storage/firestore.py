"""Google Cloud Firestore implementation of the remote document store."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import firestore
from google.oauth2 import service_account
from loguru import logger

from lekhoni.config.storage import RemoteConfig
from lekhoni.config.utils import resolve_env_reference

from .errors import RemoteSubscribeError, RemoteWriteError
from .events import Subscription
from .remote import CollectionCallback, Document, DocumentCallback, ErrorCallback, RemoteStore

# The client rejects unsupported field values with plain ValueError/TypeError.
_WRITE_ERRORS = (GoogleAPIError, GoogleAuthError, ValueError, TypeError)


def snapshot_to_document(snapshot: Any) -> Document | None:
    """Map a Firestore document snapshot to the shared wire shape."""

    if not getattr(snapshot, "exists", True):
        return None
    return {"id": snapshot.id, **(snapshot.to_dict() or {})}


class FirestoreRemoteStore(RemoteStore):
    """Writes go through ``AsyncClient``; live queries use the sync client's watch.

    Watch callbacks run on a Firestore background thread and are handed to
    the event loop that opened the store. The watch API has no error
    callback, so each subscription is paired with a monitor task that reports
    a watch that stopped on its own.
    """

    def __init__(
        self,
        config: RemoteConfig,
        *,
        client: Any | None = None,
        async_client: Any | None = None,
        monitor_interval: float = 1.0,
    ) -> None:
        self.config = config
        self._client = client
        self._async_client = async_client
        self._monitor_interval = monitor_interval
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscriptions: set[Subscription] = set()

    async def open(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._client is not None and self._async_client is not None:
            return

        project = resolve_env_reference(self.config.project_id)
        credentials = None
        if self.config.credentials_file is not None:
            credentials = service_account.Credentials.from_service_account_file(
                str(self.config.credentials_file.expanduser())
            )
        if self._client is None:
            self._client = firestore.Client(project=project, credentials=credentials)
        if self._async_client is None:
            self._async_client = firestore.AsyncClient(project=project, credentials=credentials)
        logger.info("Connected to Firestore project {}", project)

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.cancel()
        self._subscriptions.clear()
        if self._client is not None and hasattr(self._client, "close"):
            self._client.close()

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._client is None:
            raise RuntimeError("FirestoreRemoteStore.open() must be awaited before subscribing")
        return self._loop

    # ------------------------------------------------------------------
    # Subscriptions
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
        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        query = self._client.collection(name).order_by(order_by, direction=direction)

        def _convert(snapshots: list[Any]) -> list[Document]:
            documents = (snapshot_to_document(snapshot) for snapshot in snapshots)
            return [document for document in documents if document is not None]

        return self._watch(query, f"collection {name}", lambda docs: on_change(_convert(docs)), on_error)

    def subscribe_document(
        self,
        collection: str,
        document_id: str,
        on_change: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        reference = self._client.collection(collection).document(document_id)

        def _deliver(snapshots: list[Any]) -> None:
            on_change(snapshot_to_document(snapshots[0]) if snapshots else None)

        return self._watch(reference, f"document {collection}/{document_id}", _deliver, on_error)

    def _watch(
        self,
        target: Any,
        label: str,
        deliver: Callable[[list[Any]], None],
        on_error: ErrorCallback,
    ) -> Subscription:
        loop = self._require_loop()
        subscription: Subscription

        def _dispatch(snapshots: list[Any]) -> None:
            if not subscription.cancelled:
                deliver(snapshots)

        def _on_snapshot(snapshots: list[Any], _changes: Any, _read_time: Any) -> None:
            loop.call_soon_threadsafe(_dispatch, list(snapshots))

        watch = target.on_snapshot(_on_snapshot)

        async def _monitor() -> None:
            while not subscription.cancelled:
                await asyncio.sleep(self._monitor_interval)
                if subscription.cancelled:
                    return
                if not getattr(watch, "is_active", True):
                    logger.warning("Firestore watch on {} terminated", label)
                    self._subscriptions.discard(subscription)
                    on_error(RemoteSubscribeError(f"Live subscription on {label} terminated"))
                    return

        monitor = loop.create_task(_monitor())

        def _stop() -> None:
            monitor.cancel()
            watch.unsubscribe()
            self._subscriptions.discard(subscription)

        subscription = Subscription(_stop)
        self._subscriptions.add(subscription)
        return subscription

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def upsert_document(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        reference = self._async_client.collection(collection).document(document_id)
        try:
            await reference.set(dict(data), merge=True)
        except _WRITE_ERRORS as exc:
            raise RemoteWriteError(f"Failed to write {collection}/{document_id}: {exc}") from exc

    async def delete_document(self, collection: str, document_id: str) -> None:
        reference = self._async_client.collection(collection).document(document_id)
        try:
            await reference.delete()
        except _WRITE_ERRORS as exc:
            raise RemoteWriteError(f"Failed to delete {collection}/{document_id}: {exc}") from exc


__all__ = ["FirestoreRemoteStore", "snapshot_to_document"]
