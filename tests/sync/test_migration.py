from __future__ import annotations

import asyncio
import json

from lekhoni.models import Backend, Snapshot, normalize_article
from lekhoni.storage.kv import MemoryKeyValueStore
from lekhoni.sync.migration import MigrationRunner
from tests.fakes import FakeRemoteStore
from tests.utils import make_facade

LEGACY_KEY = "lekhoni_articles"

EMPTY_REMOTE = Snapshot((), Backend.REMOTE)


def _legacy(articles: object) -> MemoryKeyValueStore:
    return MemoryKeyValueStore({LEGACY_KEY: json.dumps(articles, ensure_ascii=False)})


def test_legacy_articles_are_copied_with_defaults_and_key_cleared() -> None:
    remote = FakeRemoteStore()
    kv = _legacy(
        [
            {"id": "old-1", "title": "পুরনো লেখা", "content": "...", "createdAt": 10},
            {"title": "শিরোনামহীন", "content": "...", "status": "draft", "views": 7},
        ]
    )
    runner = MigrationRunner(make_facade(remote, kv=kv), legacy_key=LEGACY_KEY)

    report = asyncio.run(runner.maybe_run(EMPTY_REMOTE))

    assert report.ran and report.cleared
    assert report.failed == []
    assert len(report.migrated) == 2
    assert kv.get(LEGACY_KEY) is None

    first = remote.get("articles", "old-1")
    assert first is not None
    assert first["status"] == "published"
    assert first["views"] == 0
    second = remote.get("articles", report.migrated[1])
    assert second is not None
    assert second["status"] == "draft"
    assert second["views"] == 7
    assert second["createdAt"] > 0


def test_only_an_empty_remote_first_delivery_triggers_migration() -> None:
    remote = FakeRemoteStore()
    kv = _legacy([{"id": "old-1", "title": "T"}])

    local_first = MigrationRunner(make_facade(remote, kv=kv), legacy_key=LEGACY_KEY)
    report = asyncio.run(local_first.maybe_run(Snapshot((), Backend.LOCAL)))
    assert not report.ran
    assert "remote" in (report.skipped_reason or "")

    populated = MigrationRunner(make_facade(remote, kv=kv), legacy_key=LEGACY_KEY)
    asyncio.run(remote.upsert_document("articles", "existing", {"id": "existing"}))
    snapshot = Snapshot((normalize_article({"id": "existing"}),), Backend.REMOTE)
    report = asyncio.run(populated.maybe_run(snapshot))
    assert report.skipped_reason == "remote collection is not empty"

    assert kv.get(LEGACY_KEY) is not None
    assert remote.writes == [("upsert", "articles", "existing")]


def test_precondition_is_evaluated_once_per_session() -> None:
    remote = FakeRemoteStore()
    kv = _legacy([{"id": "old-1", "title": "T"}])
    runner = MigrationRunner(make_facade(remote, kv=kv), legacy_key=LEGACY_KEY)

    async def _run() -> None:
        await runner.maybe_run(Snapshot((), Backend.LOCAL))
        await runner.maybe_run(EMPTY_REMOTE)

    asyncio.run(_run())

    assert runner.checked
    assert runner.report is not None and not runner.report.ran
    assert remote.writes == []
    assert kv.get(LEGACY_KEY) is not None


def test_partial_failure_clears_the_legacy_key() -> None:
    remote = FakeRemoteStore()
    remote.fail_ids.add("old-2")
    kv = _legacy(
        [
            {"id": "old-1", "title": "One"},
            {"id": "old-2", "title": "Two"},
            {"id": "old-3", "title": "Bad", "views": -5},
        ]
    )
    runner = MigrationRunner(make_facade(remote, kv=kv), legacy_key=LEGACY_KEY)

    report = asyncio.run(runner.maybe_run(EMPTY_REMOTE))

    assert report.migrated == ["old-1"]
    assert report.failed == ["old-2", "old-3"]
    assert report.cleared
    assert kv.get(LEGACY_KEY) is None
    assert remote.get("articles", "old-1") is not None


def test_legacy_key_is_kept_when_nothing_reaches_the_remote() -> None:
    remote = FakeRemoteStore()
    remote.fail_writes = True
    kv = _legacy([{"id": "old-1", "title": "One"}])
    runner = MigrationRunner(make_facade(remote, kv=kv), legacy_key=LEGACY_KEY)

    report = asyncio.run(runner.maybe_run(EMPTY_REMOTE))

    assert report.migrated == []
    assert report.failed == ["old-1"]
    assert not report.cleared
    assert kv.get(LEGACY_KEY) is not None


def test_malformed_legacy_blob_is_skipped() -> None:
    remote = FakeRemoteStore()
    kv = MemoryKeyValueStore({LEGACY_KEY: "{broken"})
    runner = MigrationRunner(make_facade(remote, kv=kv), legacy_key=LEGACY_KEY)

    report = asyncio.run(runner.maybe_run(EMPTY_REMOTE))

    assert report.skipped_reason == "no legacy articles"
    assert kv.get(LEGACY_KEY) == "{broken"
    assert remote.writes == []
