"""Keep a fixed catalog of sample articles present unless they were deleted."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Sequence

from loguru import logger
from pydantic import ValidationError

from lekhoni.models import Article, Snapshot, normalize_article
from lekhoni.storage.facade import PersistenceFacade, WriteOutcome, WritePolicy

SAMPLE_ARTICLES: tuple[Article, ...] = (
    Article(
        id="sample-meghna-tire",
        title="মেঘনার তীরে এক সন্ধ্যা",
        content=(
            "নদীর ওপারে সূর্য ডুবে যাচ্ছিল। নৌকার মাঝি গান ধরেছিল, "
            "আর বাতাসে ভেসে আসছিল ভেজা মাটির ঘ্রাণ। "
            "সেই সন্ধ্যায় বুঝেছিলাম, কিছু মুহূর্ত কেবল মনে রাখার জন্যই আসে।"
        ),
        summary="নদীর তীরে কাটানো এক সন্ধ্যার স্মৃতিকথা।",
        created_at=1_735_689_600_000,
        tags=["স্মৃতি", "নদী"],
        category="গল্প",
    ),
    Article(
        id="sample-brishti",
        title="বৃষ্টি",
        content=(
            "টিনের চালে বৃষ্টির শব্দ,\n"
            "জানালার কাচে জলের আঁকিবুঁকি,\n"
            "আর মনের ভেতর পুরনো এক সুর।"
        ),
        summary="বর্ষার দিনের ছোট্ট কবিতা।",
        created_at=1_735_776_000_000,
        tags=["বর্ষা"],
        category="কবিতা",
    ),
    Article(
        id="sample-lekhar-abhyas",
        title="লেখার অভ্যাস কেন জরুরি",
        content=(
            "প্রতিদিন অল্প হলেও লেখা মনকে গুছিয়ে রাখে। "
            "লেখা মানে নিজের চিন্তাকে স্পষ্ট করে দেখা, "
            "আর সেই স্পষ্টতাই একজন লেখকের সবচেয়ে বড় সম্পদ।"
        ),
        summary="নিয়মিত লেখার উপকারিতা নিয়ে একটি প্রবন্ধ।",
        created_at=1_735_862_400_000,
        tags=["লেখালেখি", "অভ্যাস"],
        category="প্রবন্ধ",
    ),
)


def load_catalog(path: Path | None) -> tuple[Article, ...]:
    """Load the sample catalog from ``path``, or return the built-in samples."""

    if path is None:
        return SAMPLE_ARTICLES
    if not path.exists():
        raise FileNotFoundError(f"Seed catalog not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in seed catalog {path}: {exc}") from exc
    if not isinstance(payload, list):
        raise ValueError(f"Seed catalog {path} must contain a JSON list of articles")
    try:
        catalog = tuple(normalize_article(item) for item in payload)
    except ValidationError as exc:
        raise ValueError(f"Seed catalog {path} contains an invalid article: {exc}") from exc
    logger.debug("Loaded {} sample articles from {}", len(catalog), path)
    return catalog


class SeedReconciler:
    """Upserts every catalog article that is absent from a delivery and not tombstoned.

    Ids whose upsert is still in flight are not issued a second time, so a
    burst of deliveries produces one write per missing sample.
    """

    def __init__(
        self,
        facade: PersistenceFacade,
        catalog: Sequence[Article] = SAMPLE_ARTICLES,
        *,
        is_tombstoned: Callable[[str], bool] | None = None,
    ) -> None:
        self.facade = facade
        self.catalog = tuple(catalog)
        self._is_tombstoned = is_tombstoned or facade.is_tombstoned
        self._pending: set[str] = set()

    def missing(self, snapshot: Snapshot[Article]) -> list[Article]:
        present = set(snapshot.ids())
        return [
            article
            for article in self.catalog
            if article.id not in present
            and article.id not in self._pending
            and not self._is_tombstoned(article.id)
        ]

    async def reconcile(self, snapshot: Snapshot[Article]) -> list[str]:
        """Restore missing samples; returns the ids that were written."""

        missing = self.missing(snapshot)
        if not missing:
            return []
        self._pending.update(article.id for article in missing)
        restored: list[str] = []
        try:
            for article in missing:
                # A tombstone may have landed while an earlier upsert was suspended.
                if self._is_tombstoned(article.id):
                    continue
                receipt = await self.facade.save_article(article, policy=WritePolicy.BEST_EFFORT)
                if receipt.outcome is not WriteOutcome.LOST:
                    restored.append(article.id)
        finally:
            self._pending.difference_update(article.id for article in missing)
        if restored:
            logger.info("Seeded {} sample articles: {}", len(restored), ", ".join(restored))
        return restored


__all__ = ["SAMPLE_ARTICLES", "SeedReconciler", "load_catalog"]
