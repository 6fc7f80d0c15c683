from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Mapping

import pytest

from lekhoni.models import Backend, Snapshot
from lekhoni.storage.events import Channel
from lekhoni.sync.seeding import SAMPLE_ARTICLES, SeedReconciler, load_catalog
from tests.fakes import FailingKeyValueStore, FakeRemoteStore
from tests.utils import make_facade

SAMPLE_IDS = [article.id for article in SAMPLE_ARTICLES]


class SlowRemoteStore(FakeRemoteStore):
    """Suspends before every write so overlapping reconciliations interleave."""

    async def upsert_document(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        await asyncio.sleep(0)
        await super().upsert_document(collection, document_id, data)


def test_samples_are_restored_when_absent() -> None:
    facade = make_facade()
    reconciler = SeedReconciler(facade)

    restored = asyncio.run(reconciler.reconcile(Snapshot((), Backend.LOCAL)))

    assert restored == SAMPLE_IDS
    stored = facade.local.read_collection(Channel.ARTICLES)
    assert sorted(document["id"] for document in stored) == sorted(SAMPLE_IDS)
    assert all(document["status"] == "published" for document in stored)


def test_present_samples_are_not_rewritten() -> None:
    remote = FakeRemoteStore({"articles": [article.to_document() for article in SAMPLE_ARTICLES[:2]]})
    facade = make_facade(remote)
    reconciler = SeedReconciler(facade)
    snapshot = Snapshot(SAMPLE_ARTICLES[:2], Backend.REMOTE)

    restored = asyncio.run(reconciler.reconcile(snapshot))

    assert restored == [SAMPLE_IDS[2]]
    assert remote.writes == [("upsert", "articles", SAMPLE_IDS[2])]


def test_deleted_sample_is_never_restored() -> None:
    remote = FakeRemoteStore()
    facade = make_facade(remote)
    reconciler = SeedReconciler(facade)
    target = "sample-brishti"

    async def _run() -> list[str]:
        await reconciler.reconcile(Snapshot((), Backend.REMOTE))
        await facade.delete_article(target)
        await facade.delete_article(target)
        return await reconciler.reconcile(Snapshot((), Backend.REMOTE))

    restored_again = asyncio.run(_run())

    assert target not in restored_again
    assert remote.get("articles", target) is None
    assert sorted(restored_again) == sorted(set(SAMPLE_IDS) - {target})


def test_overlapping_reconciliations_write_each_sample_once() -> None:
    remote = SlowRemoteStore()
    reconciler = SeedReconciler(make_facade(remote))
    empty = Snapshot((), Backend.REMOTE)

    async def _run() -> list[list[str]]:
        return list(await asyncio.gather(reconciler.reconcile(empty), reconciler.reconcile(empty)))

    first, second = asyncio.run(_run())

    assert first == SAMPLE_IDS
    assert second == []
    assert [write[2] for write in remote.writes] == SAMPLE_IDS


def test_tombstone_landing_mid_reconcile_is_honoured() -> None:
    remote = SlowRemoteStore()
    facade = make_facade(remote)
    reconciler = SeedReconciler(facade)

    async def _run() -> list[str]:
        results = await asyncio.gather(
            reconciler.reconcile(Snapshot((), Backend.REMOTE)),
            facade.local.mark_deleted("sample-brishti"),
        )
        return results[0]

    restored = asyncio.run(_run())

    assert "sample-brishti" not in restored
    assert remote.get("articles", "sample-brishti") is None


def test_lost_writes_are_not_reported_as_restored() -> None:
    kv = FailingKeyValueStore()
    kv.fail = True
    reconciler = SeedReconciler(make_facade(kv=kv))

    assert asyncio.run(reconciler.reconcile(Snapshot((), Backend.LOCAL))) == []


def test_load_catalog_defaults_to_builtin_samples() -> None:
    assert load_catalog(None) is SAMPLE_ARTICLES


def test_load_catalog_from_file(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps([{"id": "welcome", "title": "স্বাগতম", "tags": "a, b, a"}], ensure_ascii=False),
        encoding="utf-8",
    )

    catalog = load_catalog(path)

    assert [article.id for article in catalog] == ["welcome"]
    assert catalog[0].tags == ["a", "b"]
    assert catalog[0].status == "published"


@pytest.mark.parametrize(
    "content",
    ["{not json", json.dumps({"id": "x"}), json.dumps([{"title": "no id"}])],
)
def test_load_catalog_rejects_bad_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_catalog(path)


def test_load_catalog_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_catalog(tmp_path / "absent.json")
