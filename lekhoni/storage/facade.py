"""Single persistence API that routes every call to the remote or local store."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from loguru import logger

from lekhoni.config.storage import RemoteConfig
from lekhoni.identity import DemoIdentityProvider, IdentityError, IdentityProvider
from lekhoni.models import (
    Article,
    ArticlePatch,
    Backend,
    ContactMessage,
    Identity,
    SiteConfig,
    SiteConfigPatch,
    Snapshot,
    Subscriber,
    article_document,
    normalize_article,
    normalize_identity,
    normalize_many,
    normalize_message,
    normalize_site_config,
    normalize_subscriber,
)

from .capability import BackendCapability
from .errors import LocalWriteError, RemoteStoreError
from .events import Channel, EventBus, Subscription
from .local import LocalStore
from .remote import ErrorCallback, RemoteStore


class WritePolicy(str, Enum):
    """How a write that cannot be persisted anywhere is reported.

    ``DURABLE`` raises :class:`LocalWriteError` to the caller; ``BEST_EFFORT``
    logs the loss and returns :attr:`WriteOutcome.LOST`.
    """

    DURABLE = "durable"
    BEST_EFFORT = "best_effort"


class WriteOutcome(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
    LOCAL_FALLBACK = "local_fallback"
    LOST = "lost"


@dataclass(frozen=True, slots=True)
class WriteReceipt:
    entity_id: str
    outcome: WriteOutcome


class PersistenceFacade:
    """Hides the remote/local routing decision from callers.

    Subscriptions start remote when the backend is available and silently
    continue from the local store if the remote side fails. Writes try the
    remote store first and, on any remote failure, also perform the matching
    local write so nothing a caller saved is dropped without a trace. The two
    stores may diverge until a later remote write for the same id succeeds.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore | None,
        capability: BackendCapability,
        *,
        remote_config: RemoteConfig | None = None,
        identity_provider: IdentityProvider | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.capability = capability
        self.names = remote_config or RemoteConfig()
        self._identity_provider = identity_provider
        self._identity_bus = EventBus()
        self._identity: Identity | None = None

    @property
    def remote_available(self) -> bool:
        return self.capability.remote_available and self.remote is not None

    async def open(self) -> None:
        await self.local.open()
        if self.remote_available:
            assert self.remote is not None
            await self.remote.open()

    async def close(self) -> None:
        if self.remote_available:
            assert self.remote is not None
            await self.remote.close()
        await self.local.close()

    async def __aenter__(self) -> "PersistenceFacade":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Routing primitives
    # ------------------------------------------------------------------
    def _route_subscription(
        self,
        label: str,
        channel: Channel,
        open_remote: Callable[[Callable[[Any], None], ErrorCallback], Subscription],
        deliver: Callable[[Any, Backend], None],
    ) -> Subscription:
        handle = Subscription()

        def _subscribe_local() -> None:
            handle.attach(self.local.subscribe(channel, lambda value: deliver(value, Backend.LOCAL)))

        if not self.remote_available:
            _subscribe_local()
            return handle

        degraded = False

        def _on_error(exc: Exception) -> None:
            nonlocal degraded
            if handle.cancelled or degraded:
                return
            degraded = True
            logger.warning("Remote subscription to {} failed; continuing from the local store: {}", label, exc)
            _subscribe_local()

        try:
            remote = open_remote(lambda value: deliver(value, Backend.REMOTE), _on_error)
        except RemoteStoreError as exc:
            _on_error(exc)
            return handle
        # A store may report the failure before subscribe returns.
        if degraded:
            remote.cancel()
        else:
            handle.attach(remote)
        return handle

    async def _write(
        self,
        label: str,
        remote_op: Callable[[], Awaitable[None]],
        local_op: Callable[[], Awaitable[Any]],
        policy: WritePolicy,
    ) -> WriteOutcome:
        fell_back = False
        if self.remote_available:
            try:
                await remote_op()
                return WriteOutcome.REMOTE
            except RemoteStoreError as exc:
                logger.warning("Remote {} failed, writing to the local store instead: {}", label, exc)
                fell_back = True

        try:
            await local_op()
        except LocalWriteError as exc:
            if policy is WritePolicy.BEST_EFFORT:
                logger.error("Best-effort {} was lost: {}", label, exc)
                return WriteOutcome.LOST
            raise
        return WriteOutcome.LOCAL_FALLBACK if fell_back else WriteOutcome.LOCAL

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------
    def subscribe_articles(self, callback: Callable[[Snapshot[Article]], None]) -> Subscription:
        def _deliver(documents: list[dict[str, Any]], source: Backend) -> None:
            callback(Snapshot(normalize_many(documents, normalize_article), source))

        return self._route_subscription(
            "articles",
            Channel.ARTICLES,
            lambda on_change, on_error: self.remote.subscribe_collection(  # type: ignore[union-attr]
                self.names.articles_collection, on_change, on_error
            ),
            _deliver,
        )

    async def save_article(
        self,
        article: Article | ArticlePatch | Mapping[str, Any],
        *,
        policy: WritePolicy = WritePolicy.DURABLE,
        local_document: Mapping[str, Any] | None = None,
    ) -> WriteReceipt:
        """Merge-write ``article``; an article without id is created with a fresh one.

        ``local_document`` is the whole article to keep locally when the write
        lands in the local store, for callers that send the remote store a
        partial update of an article the local store may not hold.
        """

        document = article_document(article)
        entity_id = document["id"]
        local = {**local_document, "id": entity_id} if local_document is not None else document
        outcome = await self._write(
            f"save of article {entity_id}",
            lambda: self.remote.upsert_document(  # type: ignore[union-attr]
                self.names.articles_collection, entity_id, document
            ),
            lambda: self.local.upsert(Channel.ARTICLES, local),
            policy,
        )
        logger.debug("Saved article {} ({})", entity_id, outcome.value)
        return WriteReceipt(entity_id, outcome)

    async def delete_article(
        self,
        article_id: str,
        *,
        policy: WritePolicy = WritePolicy.DURABLE,
    ) -> WriteReceipt:
        """Delete ``article_id`` and tombstone it so seeding never brings it back."""

        # The tombstone lands first: the deletion itself triggers a delivery
        # that seed reconciliation inspects.
        await self.local.mark_deleted(article_id)
        outcome = await self._write(
            f"delete of article {article_id}",
            lambda: self.remote.delete_document(  # type: ignore[union-attr]
                self.names.articles_collection, article_id
            ),
            lambda: self.local.delete(Channel.ARTICLES, article_id),
            policy,
        )
        logger.info("Deleted article {} ({})", article_id, outcome.value)
        return WriteReceipt(article_id, outcome)

    def is_tombstoned(self, article_id: str) -> bool:
        return self.local.is_deleted(article_id)

    # ------------------------------------------------------------------
    # Site configuration
    # ------------------------------------------------------------------
    def subscribe_config(self, callback: Callable[[SiteConfig], None]) -> Subscription:
        return self._route_subscription(
            "site config",
            Channel.CONFIG,
            lambda on_change, on_error: self.remote.subscribe_document(  # type: ignore[union-attr]
                self.names.settings_collection, self.names.settings_document, on_change, on_error
            ),
            lambda document, _source: callback(normalize_site_config(document)),
        )

    async def save_config(
        self,
        updates: SiteConfig | SiteConfigPatch | Mapping[str, Any],
        *,
        policy: WritePolicy = WritePolicy.DURABLE,
    ) -> WriteReceipt:
        if isinstance(updates, SiteConfig):
            fields = updates.to_document()
        else:
            patch = updates if isinstance(updates, SiteConfigPatch) else SiteConfigPatch.model_validate(dict(updates))
            fields = {
                key: value
                for key, value in patch.model_dump(by_alias=True, exclude_unset=True).items()
                if value is not None
            }
        outcome = await self._write(
            "site config update",
            lambda: self.remote.upsert_document(  # type: ignore[union-attr]
                self.names.settings_collection, self.names.settings_document, fields
            ),
            lambda: self.local.merge_document(Channel.CONFIG, fields),
            policy,
        )
        return WriteReceipt(self.names.settings_document, outcome)

    # ------------------------------------------------------------------
    # Newsletter subscribers and contact messages
    # ------------------------------------------------------------------
    def subscribe_subscribers(self, callback: Callable[[Snapshot[Subscriber]], None]) -> Subscription:
        return self._route_subscription(
            "subscribers",
            Channel.SUBSCRIBERS,
            lambda on_change, on_error: self.remote.subscribe_collection(  # type: ignore[union-attr]
                self.names.subscribers_collection, on_change, on_error
            ),
            lambda documents, source: callback(Snapshot(normalize_many(documents, normalize_subscriber), source)),
        )

    def subscribe_messages(self, callback: Callable[[Snapshot[ContactMessage]], None]) -> Subscription:
        return self._route_subscription(
            "contact messages",
            Channel.MESSAGES,
            lambda on_change, on_error: self.remote.subscribe_collection(  # type: ignore[union-attr]
                self.names.messages_collection, on_change, on_error
            ),
            lambda documents, source: callback(Snapshot(normalize_many(documents, normalize_message), source)),
        )

    async def add_subscriber(self, email: str, *, policy: WritePolicy = WritePolicy.DURABLE) -> WriteReceipt:
        record = Subscriber(email=email.strip()).to_document()
        outcome = await self._write(
            "newsletter subscription",
            lambda: self.remote.upsert_document(  # type: ignore[union-attr]
                self.names.subscribers_collection, record["id"], record
            ),
            lambda: self.local.append(Channel.SUBSCRIBERS, record),
            policy,
        )
        return WriteReceipt(record["id"], outcome)

    async def send_message(
        self,
        name: str,
        email: str,
        message: str,
        *,
        policy: WritePolicy = WritePolicy.DURABLE,
    ) -> WriteReceipt:
        record = ContactMessage(name=name, email=email, message=message).to_document()
        outcome = await self._write(
            "contact message",
            lambda: self.remote.upsert_document(  # type: ignore[union-attr]
                self.names.messages_collection, record["id"], record
            ),
            lambda: self.local.append(Channel.MESSAGES, record),
            policy,
        )
        return WriteReceipt(record["id"], outcome)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def _provider(self) -> IdentityProvider:
        if self.remote_available:
            if self._identity_provider is None:
                raise IdentityError("No identity provider is configured for the remote backend")
            return self._identity_provider
        return self._identity_provider or DemoIdentityProvider()

    async def login(self) -> Identity:
        """Sign in; failures surface as :class:`IdentityError` and are never faked."""

        provider = self._provider()
        try:
            identity = await provider.sign_in()
        except IdentityError as exc:
            logger.error("Sign-in failed: {}", exc)
            raise

        if self.remote_available:
            self._identity = identity
            self._identity_bus.publish(Channel.IDENTITY, identity)
        else:
            await self.local.replace_document(Channel.IDENTITY, identity.to_document())
        logger.info("Signed in as {} ({})", identity.name, identity.provider)
        return identity

    async def logout(self) -> None:
        if self.remote_available:
            await self._provider().sign_out()
            self._identity = None
            self._identity_bus.publish(Channel.IDENTITY, None)
        else:
            await self.local.remove_document(Channel.IDENTITY)
        logger.info("Signed out")

    def subscribe_identity(self, callback: Callable[[Identity | None], None]) -> Subscription:
        if self.remote_available:
            subscription = self._identity_bus.subscribe(Channel.IDENTITY, callback)
            callback(self._identity)
            return subscription
        return self.local.subscribe(Channel.IDENTITY, lambda document: callback(normalize_identity(document)))


__all__ = ["PersistenceFacade", "WriteOutcome", "WritePolicy", "WriteReceipt"]
