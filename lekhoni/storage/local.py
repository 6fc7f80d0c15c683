"""Durable local persistence with in-process and cross-process notification."""

from __future__ import annotations

import asyncio
import contextlib
import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from loguru import logger

from lekhoni.config.storage import StorageConfig

from .errors import LocalWriteError
from .events import Channel, EventBus, Subscription
from .kv import KeyValueStore, create_key_value_store

Document = dict[str, Any]

COLLECTION_CHANNELS = frozenset({Channel.ARTICLES, Channel.SUBSCRIBERS, Channel.MESSAGES})
DOCUMENT_CHANNELS = frozenset({Channel.CONFIG, Channel.IDENTITY})


@dataclass(frozen=True, slots=True)
class Draft:
    """In-progress editor text that has not been saved as an article yet."""

    title: str = ""
    content: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.title or self.content)


class LocalStore:
    """Stores each collection as one serialized blob per key.

    Collections keep their stored order: an upsert of a known id replaces the
    entity where it sits, an unknown id is prepended so new entities surface
    first. Every mutation notifies subscribers of that channel with the full
    current value.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        key_prefix: str = "saadwrites",
        watch_interval: float = 0.0,
        bus: EventBus | None = None,
    ) -> None:
        self.kv = kv
        self.key_prefix = key_prefix
        self.watch_interval = watch_interval
        self.bus = bus or EventBus()
        self._revisions: dict[str, int | None] = {}
        self._watch_task: asyncio.Task[None] | None = None
        self._opened = False

    @classmethod
    def from_config(cls, config: StorageConfig, *, kv: KeyValueStore | None = None) -> "LocalStore":
        return cls(
            kv or create_key_value_store(config),
            key_prefix=config.key_prefix,
            watch_interval=config.watch_interval,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def open(self) -> None:
        if self._opened:
            return
        self.kv.open()
        self._opened = True
        for channel in Channel:
            key = self.key(channel.value)
            self._revisions[key] = self.kv.revision(key)
        if self.watch_interval > 0:
            self._watch_task = asyncio.get_running_loop().create_task(self._watch())
        logger.debug("Local store opened (prefix={}, watch={}s)", self.key_prefix, self.watch_interval)

    async def close(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watch_task
            self._watch_task = None
        if self._opened:
            self.kv.close()
            self._opened = False

    def key(self, name: str) -> str:
        return f"{self.key_prefix}_{name}"

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------
    def _load(self, key: str) -> Any:
        raw = self.kv.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt local value under {}: {}", key, exc)
            return None

    def _dump(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise LocalWriteError(f"Cannot serialize value for {key!r}: {exc}") from exc
        self.kv.set(key, payload)
        self._revisions[key] = self.kv.revision(key)

    def _remove(self, key: str) -> None:
        self.kv.remove(key)
        self._revisions[key] = self.kv.revision(key)

    def read_collection(self, channel: Channel) -> list[Document]:
        value = self._load(self.key(channel.value))
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    def read_document(self, channel: Channel) -> Document | None:
        value = self._load(self.key(channel.value))
        return value if isinstance(value, dict) else None

    def current(self, channel: Channel) -> Any:
        if channel in COLLECTION_CHANNELS:
            return self.read_collection(channel)
        return self.read_document(channel)

    def _notify(self, channel: Channel) -> None:
        self.bus.publish(channel, self.current(channel))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, channel: Channel, on_change: Callable[[Any], None]) -> Subscription:
        """Replay the current value once, then deliver every later change."""

        subscription = self.bus.subscribe(channel, on_change)
        on_change(self.current(channel))
        return subscription

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------
    async def upsert(self, channel: Channel, document: Mapping[str, Any]) -> None:
        entity_id = document.get("id")
        if not entity_id:
            raise LocalWriteError("Cannot upsert a document without an id")
        key = self.key(channel.value)
        items = self.read_collection(channel)
        for index, existing in enumerate(items):
            if existing.get("id") == entity_id:
                items[index] = {**existing, **document}
                break
        else:
            items.insert(0, dict(document))
        self._dump(key, items)
        self._notify(channel)

    async def delete(self, channel: Channel, entity_id: str) -> bool:
        items = self.read_collection(channel)
        remaining = [item for item in items if item.get("id") != entity_id]
        self._dump(self.key(channel.value), remaining)
        self._notify(channel)
        return len(remaining) != len(items)

    async def append(self, channel: Channel, record: Mapping[str, Any]) -> None:
        items = self.read_collection(channel)
        items.append(dict(record))
        self._dump(self.key(channel.value), items)
        self._notify(channel)

    # ------------------------------------------------------------------
    # Singleton documents
    # ------------------------------------------------------------------
    async def merge_document(self, channel: Channel, fields: Mapping[str, Any]) -> Document:
        merged = {**(self.read_document(channel) or {}), **fields}
        self._dump(self.key(channel.value), merged)
        self._notify(channel)
        return merged

    async def replace_document(self, channel: Channel, document: Mapping[str, Any]) -> None:
        self._dump(self.key(channel.value), dict(document))
        self._notify(channel)

    async def remove_document(self, channel: Channel) -> None:
        self._remove(self.key(channel.value))
        self._notify(channel)

    # ------------------------------------------------------------------
    # Tombstones
    # ------------------------------------------------------------------
    def _tombstone_key(self, entity_id: str) -> str:
        return self.key(f"deleted_{entity_id}")

    def is_deleted(self, entity_id: str) -> bool:
        return self.kv.get(self._tombstone_key(entity_id)) is not None

    async def mark_deleted(self, entity_id: str) -> None:
        self.kv.set(self._tombstone_key(entity_id), "true")

    def tombstones(self) -> set[str]:
        prefix = self.key("deleted_")
        return {key[len(prefix):] for key in self.kv.keys() if key.startswith(prefix)}

    # ------------------------------------------------------------------
    # Drafts and counters
    # ------------------------------------------------------------------
    def load_draft(self) -> Draft:
        return Draft(
            title=self.kv.get(self.key("draft_title")) or "",
            content=self.kv.get(self.key("draft_content")) or "",
        )

    async def save_draft(self, title: str, content: str) -> None:
        self.kv.set(self.key("draft_title"), title)
        self.kv.set(self.key("draft_content"), content)

    async def clear_draft(self) -> None:
        self.kv.remove(self.key("draft_title"))
        self.kv.remove(self.key("draft_content"))

    def total_visits(self) -> int:
        value = self._load(self.key("visits"))
        return value if isinstance(value, int) and value >= 0 else 0

    async def bump_visits(self, amount: int = 1) -> int:
        total = self.total_visits() + amount
        self._dump(self.key("visits"), total)
        return total

    # ------------------------------------------------------------------
    # Legacy data
    # ------------------------------------------------------------------
    def read_legacy(self, name: str) -> str | None:
        """Raw legacy blob stored under an unprefixed key."""
        return self.kv.get(name)

    async def clear_legacy(self, name: str) -> None:
        self.kv.remove(name)

    # ------------------------------------------------------------------
    # Cross-process change detection
    # ------------------------------------------------------------------
    def poll_external_changes(self) -> list[Channel]:
        """Notify channels whose stored value was rewritten by another process."""

        changed: list[Channel] = []
        for channel in Channel:
            key = self.key(channel.value)
            revision = self.kv.revision(key)
            if revision != self._revisions.get(key):
                self._revisions[key] = revision
                changed.append(channel)
                logger.debug("Detected external change on {}", key)
                self._notify(channel)
        return changed

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.watch_interval)
            self.poll_external_changes()


__all__ = ["COLLECTION_CHANNELS", "DOCUMENT_CHANNELS", "Document", "Draft", "LocalStore"]
