"""In-process change notification keyed by entity channel."""

from __future__ import annotations

from collections import defaultdict
from enum import Enum
from typing import Any, Callable

from loguru import logger


class Channel(str, Enum):
    """Entity collections that can be observed."""

    ARTICLES = "articles"
    CONFIG = "config"
    IDENTITY = "user"
    SUBSCRIBERS = "subscribers"
    MESSAGES = "messages"


Handler = Callable[[Any], None]


class Subscription:
    """Cancellation handle returned by every ``subscribe`` call.

    A handle may wrap an inner handle that is swapped over time, which is how a
    remote subscription degrades to a local one without the caller noticing.
    """

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._on_cancel = on_cancel
        self._inner: Subscription | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def attach(self, inner: "Subscription") -> None:
        """Replace the wrapped handle, cancelling the previous one."""
        if self._cancelled:
            inner.cancel()
            return
        previous, self._inner = self._inner, inner
        if previous is not None:
            previous.cancel()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._inner is not None:
            self._inner.cancel()
            self._inner = None
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()


class EventBus:
    """Typed publish/subscribe registry; handlers run synchronously in order."""

    def __init__(self) -> None:
        self._handlers: dict[Channel, list[Handler]] = defaultdict(list)

    def subscribe(self, channel: Channel, handler: Handler) -> Subscription:
        self._handlers[channel].append(handler)

        def _remove() -> None:
            handlers = self._handlers.get(channel, [])
            if handler in handlers:
                handlers.remove(handler)

        return Subscription(_remove)

    def publish(self, channel: Channel, payload: Any) -> None:
        for handler in list(self._handlers.get(channel, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Subscriber for channel {} failed", channel.value)

    def subscriber_count(self, channel: Channel) -> int:
        return len(self._handlers.get(channel, ()))


__all__ = ["Channel", "EventBus", "Handler", "Subscription"]
