"""Remote document store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

from .events import Subscription

Document = dict[str, Any]
CollectionCallback = Callable[[list[Document]], None]
DocumentCallback = Callable[[Document | None], None]
ErrorCallback = Callable[[Exception], None]


class RemoteStore(ABC):
    """Push-subscribed collections of documents keyed by id.

    Collection deliveries always carry the full ordered collection, never a
    diff. Subscriptions may terminate after any number of deliveries; that is
    reported once through ``on_error`` and the subscription delivers nothing
    further. Writes raise :class:`~lekhoni.storage.errors.RemoteWriteError`.
    Nothing is retried by the store itself.
    """

    async def open(self) -> None:
        """Connect to the backend."""

    async def close(self) -> None:
        """Disconnect and stop every live subscription."""

    @abstractmethod
    def subscribe_collection(
        self,
        name: str,
        on_change: CollectionCallback,
        on_error: ErrorCallback,
        *,
        order_by: str = "createdAt",
        descending: bool = True,
    ) -> Subscription:
        ...

    @abstractmethod
    def subscribe_document(
        self,
        collection: str,
        document_id: str,
        on_change: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        ...

    @abstractmethod
    async def upsert_document(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        """Merge-write: only the supplied fields are written."""

    @abstractmethod
    async def delete_document(self, collection: str, document_id: str) -> None:
        ...


__all__ = [
    "CollectionCallback",
    "Document",
    "DocumentCallback",
    "ErrorCallback",
    "RemoteStore",
]
