"""One-shot copy of legacy local articles into the remote store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import ValidationError

from lekhoni.models import Article, Backend, Snapshot
from lekhoni.storage.errors import LocalWriteError
from lekhoni.storage.facade import PersistenceFacade, WriteOutcome


@dataclass
class MigrationReport:
    """Outcome of a migration attempt."""

    migrated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    cleared: bool = False
    skipped_reason: str | None = None

    @property
    def ran(self) -> bool:
        return self.skipped_reason is None


class MigrationRunner:
    """Copies the legacy article list to the remote store at most once per session.

    The precondition is evaluated exactly once, against the first delivery it
    is shown: the delivery must come from the remote store and be empty, and
    the legacy blob must hold at least one article. Each legacy article is
    written with its own independent upsert. Once any of them reaches the
    remote store the legacy key is cleared, since a non-empty remote can never
    satisfy the precondition again; failed articles are logged by id. If none
    of them reached the remote store the key is kept for a later session.
    """

    def __init__(self, facade: PersistenceFacade, *, legacy_key: str = "lekhoni_articles") -> None:
        self.facade = facade
        self.legacy_key = legacy_key
        self._checked = False
        self.report: MigrationReport | None = None

    @property
    def checked(self) -> bool:
        return self._checked

    def _legacy_articles(self) -> list[dict[str, Any]]:
        raw = self.facade.local.read_legacy(self.legacy_key)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Legacy data under {} is not valid JSON; skipping migration: {}", self.legacy_key, exc)
            return []
        if not isinstance(parsed, list):
            logger.error("Legacy data under {} is not a list; skipping migration", self.legacy_key)
            return []
        return [item for item in parsed if isinstance(item, dict)]

    async def maybe_run(self, snapshot: Snapshot[Article]) -> MigrationReport:
        if self._checked:
            return MigrationReport(skipped_reason="already checked this session")
        self._checked = True

        if snapshot.source is not Backend.REMOTE:
            self.report = MigrationReport(skipped_reason="first delivery did not come from the remote store")
        elif len(snapshot):
            self.report = MigrationReport(skipped_reason="remote collection is not empty")
        else:
            legacy = self._legacy_articles()
            if not legacy:
                self.report = MigrationReport(skipped_reason="no legacy articles")
            else:
                self.report = await self._migrate(legacy)

        if self.report.skipped_reason:
            logger.debug("Migration skipped: {}", self.report.skipped_reason)
        return self.report

    async def _migrate(self, legacy: list[dict[str, Any]]) -> MigrationReport:
        logger.info("Migrating {} legacy articles to the remote store", len(legacy))
        report = MigrationReport()
        for raw in legacy:
            label = str(raw.get("id") or raw.get("title") or "<untitled>")
            payload = {
                **raw,
                "status": raw.get("status") or "published",
                "views": raw.get("views") or 0,
            }
            try:
                receipt = await self.facade.save_article(payload)
            except (ValidationError, LocalWriteError) as exc:
                logger.error("Failed to migrate legacy article {}: {}", label, exc)
                report.failed.append(label)
                continue
            if receipt.outcome is WriteOutcome.REMOTE:
                report.migrated.append(receipt.entity_id)
            else:
                logger.warning("Legacy article {} only reached the local store", receipt.entity_id)
                report.failed.append(receipt.entity_id)

        if not report.migrated:
            logger.warning("No legacy article reached the remote store; keeping {}", self.legacy_key)
            return report
        if report.failed:
            logger.warning(
                "Migration incomplete: {} migrated, failed articles not copied: {}",
                len(report.migrated),
                ", ".join(report.failed),
            )

        await self.facade.local.clear_legacy(self.legacy_key)
        report.cleared = True
        logger.info("Migrated {} legacy articles and cleared {}", len(report.migrated), self.legacy_key)
        return report


__all__ = ["MigrationReport", "MigrationRunner"]
