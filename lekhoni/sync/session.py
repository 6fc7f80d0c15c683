"""Long-lived article subscription that drives migration and seeding."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from lekhoni.models import Article, Backend, Snapshot
from lekhoni.storage.events import Subscription
from lekhoni.storage.facade import PersistenceFacade

from .migration import MigrationReport, MigrationRunner
from .seeding import SeedReconciler

SnapshotListener = Callable[[Snapshot[Article]], None]


class SyncSession:
    """Owns the process-wide article subscription.

    Keeps the latest delivered snapshot, hands the first delivery to the
    migration runner and every delivery to the seed reconciler. Both run as
    tasks on the event loop so a delivery callback never blocks on a write.
    """

    def __init__(
        self,
        facade: PersistenceFacade,
        *,
        migration: MigrationRunner | None = None,
        seeder: SeedReconciler | None = None,
    ) -> None:
        self.facade = facade
        self.migration = migration
        self.seeder = seeder
        self.snapshot: Snapshot[Article] = Snapshot((), Backend.LOCAL)
        self.deliveries = 0
        self.migration_report: MigrationReport | None = None
        self._subscription: Subscription | None = None
        self._ready = asyncio.Event()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[SnapshotListener] = []

    @property
    def started(self) -> bool:
        return self._subscription is not None and not self._subscription.cancelled

    @property
    def articles(self) -> tuple[Article, ...]:
        return self.snapshot.items

    def get(self, article_id: str) -> Article | None:
        return self.snapshot.get(article_id)

    def add_listener(self, listener: SnapshotListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(lambda: self._listeners.remove(listener))

    def start(self) -> None:
        if self.started:
            return
        self._subscription = self.facade.subscribe_articles(self._on_snapshot)

    def _on_snapshot(self, snapshot: Snapshot[Article]) -> None:
        first = self.deliveries == 0
        self.snapshot = snapshot
        self.deliveries += 1
        self._ready.set()
        logger.debug("Received {} articles from the {} store", len(snapshot), snapshot.source.value)

        if first and self.migration is not None:
            self._spawn(self._run_migration(snapshot))
        if self.seeder is not None:
            self._spawn(self._run_seeding())
        for listener in list(self._listeners):
            listener(snapshot)

    async def _run_migration(self, snapshot: Snapshot[Article]) -> None:
        assert self.migration is not None
        self.migration_report = await self.migration.maybe_run(snapshot)

    async def _run_seeding(self) -> None:
        assert self.seeder is not None
        # Deliveries queue up behind writes; reconcile against the newest one.
        await self.seeder.reconcile(self.snapshot)

    def _spawn(self, coroutine: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Background sync task failed: {}", exc)

    async def wait_ready(self) -> Snapshot[Article]:
        """Wait for the first delivery.

        There is no timeout: a remote subscription that hangs without
        delivering or failing keeps this pending.
        """

        await self._ready.wait()
        return self.snapshot

    async def drain(self) -> None:
        """Wait until no migration or seeding task is pending, including follow-ups."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            # Writes notify subscribers synchronously; let follow-up deliveries schedule.
            await asyncio.sleep(0)

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
        await self.drain()


__all__ = ["SnapshotListener", "SyncSession"]
