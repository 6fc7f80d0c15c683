"""Wire configuration, stores, facade, sync session and mutations together."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from lekhoni.assistant import WritingAssistant
from lekhoni.config.app import AppConfig
from lekhoni.identity import IdentityProvider
from lekhoni.models import Backend, ContactMessage, SiteConfig, Snapshot, Subscriber
from lekhoni.mutations import MutationPipeline
from lekhoni.storage.capability import BackendCapability, detect_backend
from lekhoni.storage.events import Subscription
from lekhoni.storage.facade import PersistenceFacade
from lekhoni.storage.kv import KeyValueStore
from lekhoni.storage.local import LocalStore
from lekhoni.storage.remote import RemoteStore
from lekhoni.sync.migration import MigrationRunner
from lekhoni.sync.seeding import SeedReconciler, load_catalog
from lekhoni.sync.session import SyncSession


@dataclass
class Runtime:
    """Everything a process needs to read and write site content."""

    config: AppConfig
    facade: PersistenceFacade
    session: SyncSession
    mutations: MutationPipeline
    assistant: WritingAssistant
    site: SiteConfig = field(default_factory=SiteConfig)
    subscribers: Snapshot[Subscriber] = field(default_factory=lambda: Snapshot((), Backend.LOCAL))
    messages: Snapshot[ContactMessage] = field(default_factory=lambda: Snapshot((), Backend.LOCAL))
    _subscriptions: list[Subscription] = field(default_factory=list)
    _opened: bool = False

    @property
    def local(self) -> LocalStore:
        return self.facade.local

    @property
    def capability(self) -> BackendCapability:
        return self.facade.capability

    async def open(self) -> None:
        if self._opened:
            return
        await self.facade.open()
        self._subscriptions = [
            self.facade.subscribe_config(self._on_site_config),
            self.facade.subscribe_subscribers(self._on_subscribers),
            self.facade.subscribe_messages(self._on_messages),
        ]
        self.session.start()
        self._opened = True
        logger.info(
            "Runtime ready ({} backend)",
            "remote" if self.facade.remote_available else "local",
        )

    def _on_site_config(self, site: SiteConfig) -> None:
        self.site = site

    def _on_subscribers(self, snapshot: Snapshot[Subscriber]) -> None:
        self.subscribers = snapshot

    def _on_messages(self, snapshot: Snapshot[ContactMessage]) -> None:
        self.messages = snapshot

    async def close(self) -> None:
        if not self._opened:
            return
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        await self.mutations.flush()
        await self.session.close()
        await self.facade.close()
        self._opened = False

    async def __aenter__(self) -> "Runtime":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def _default_remote(config: AppConfig) -> RemoteStore:
    from lekhoni.storage.firestore import FirestoreRemoteStore

    return FirestoreRemoteStore(config.remote)


def build_runtime(
    config: AppConfig,
    *,
    kv: KeyValueStore | None = None,
    remote: RemoteStore | None = None,
    capability: BackendCapability | None = None,
    identity_provider: IdentityProvider | None = None,
) -> Runtime:
    """Build an unopened :class:`Runtime` for ``config``.

    ``remote`` and ``kv`` replace the configured media, which is how tests
    substitute in-memory fakes. Passing ``remote`` without ``capability``
    treats the remote store as available.
    """

    if capability is None:
        capability = (
            BackendCapability(True, "remote store injected")
            if remote is not None
            else detect_backend(config.remote)
        )
    if remote is None and capability.remote_available:
        remote = _default_remote(config)

    local = LocalStore.from_config(config.storage, kv=kv)
    facade = PersistenceFacade(
        local,
        remote,
        capability,
        remote_config=config.remote,
        identity_provider=identity_provider,
    )

    migration = (
        MigrationRunner(facade, legacy_key=config.migration.legacy_key)
        if config.migration.enabled
        else None
    )
    seeder = (
        SeedReconciler(facade, load_catalog(config.seed.catalog_path))
        if config.seed.enabled
        else None
    )
    session = SyncSession(facade, migration=migration, seeder=seeder)
    mutations = MutationPipeline(facade, session.get)
    return Runtime(
        config=config,
        facade=facade,
        session=session,
        mutations=mutations,
        assistant=WritingAssistant(config.assistant),
    )


__all__ = ["Runtime", "build_runtime"]
