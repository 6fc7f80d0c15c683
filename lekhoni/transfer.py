"""JSON export and validated import of the full article set."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from loguru import logger
from pydantic import ValidationError

from lekhoni.models import Article, normalize_article
from lekhoni.storage.facade import PersistenceFacade, WriteOutcome, WritePolicy


class MalformedImportError(ValueError):
    """The import payload is not a JSON list of articles; nothing was written."""


@dataclass
class ImportReport:
    outcomes: dict[str, WriteOutcome] = field(default_factory=dict)

    @property
    def imported(self) -> list[str]:
        return [entity_id for entity_id, outcome in self.outcomes.items() if outcome is not WriteOutcome.LOST]


def export_filename(today: date | None = None, *, prefix: str = "saadwrites") -> str:
    day = today or date.today()
    return f"{prefix}_backup_{day.isoformat()}.json"


def export_articles(articles: Iterable[Article]) -> str:
    """Serialize ``articles`` in their wire shape, pretty-printed."""

    return json.dumps([article.to_document() for article in articles], indent=2, ensure_ascii=False)


def parse_import(payload: str | bytes | Any) -> list[Article]:
    """Validate an import payload completely before anything is written.

    ``payload`` may be raw JSON text or an already decoded value.
    """

    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedImportError(f"Import file is not valid JSON: {exc}") from exc

    if not isinstance(payload, list):
        raise MalformedImportError("Import file must contain a JSON list of articles")

    articles: list[Article] = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise MalformedImportError(f"Entry {index} is not an object")
        try:
            articles.append(normalize_article(item))
        except ValidationError as exc:
            raise MalformedImportError(f"Entry {index} is not a valid article: {exc.errors()[0]['msg']}") from exc
    return articles


async def import_articles(
    facade: PersistenceFacade,
    articles: Iterable[Article],
    *,
    policy: WritePolicy = WritePolicy.DURABLE,
) -> ImportReport:
    """Merge-write every article; ids are kept so a re-import is idempotent."""

    report = ImportReport()
    for article in articles:
        receipt = await facade.save_article(article, policy=policy)
        report.outcomes[receipt.entity_id] = receipt.outcome
    logger.info("Imported {} articles", len(report.imported))
    return report


__all__ = [
    "ImportReport",
    "MalformedImportError",
    "export_articles",
    "export_filename",
    "import_articles",
    "parse_import",
]
