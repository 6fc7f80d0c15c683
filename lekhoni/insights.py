"""Dashboard statistics over the article set."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import polars as pl

from lekhoni.models import DEFAULT_CATEGORIES, Article

WORDS_PER_MINUTE = 200
ALL_CATEGORIES = "সব"
DRAFTS_CATEGORY = "খসড়া"

_WORD = re.compile(r"\S+")

_SCHEMA = {
    "id": pl.Utf8,
    "title": pl.Utf8,
    "content": pl.Utf8,
    "category": pl.Utf8,
    "status": pl.Utf8,
    "views": pl.Int64,
    "comments": pl.Int64,
    "created_at": pl.Int64,
}


@dataclass(frozen=True)
class PopularArticle:
    id: str
    title: str
    views: int


@dataclass(frozen=True)
class InsightReport:
    total_visits: int
    total_articles: int
    published: int
    drafts: int
    total_comments: int
    total_words: int
    popular: list[PopularArticle] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "totalVisits": self.total_visits,
            "totalArticles": self.total_articles,
            "published": self.published,
            "drafts": self.drafts,
            "totalComments": self.total_comments,
            "totalWords": self.total_words,
            "popular": [{"id": item.id, "title": item.title, "views": item.views} for item in self.popular],
            "categories": list(self.categories),
        }


def articles_frame(articles: Iterable[Article]) -> pl.DataFrame:
    rows = [
        {
            "id": article.id,
            "title": article.title,
            "content": article.content,
            "category": article.category,
            "status": article.status,
            "views": article.views,
            "comments": len(article.comments),
            "created_at": article.created_at,
        }
        for article in articles
    ]
    return pl.DataFrame(rows, schema=_SCHEMA)


def build_insights(articles: Sequence[Article], *, total_visits: int = 0, top: int = 5) -> InsightReport:
    frame = articles_frame(articles).with_columns(
        pl.col("content").str.count_matches(r"\S+").fill_null(0).alias("words"),
    )
    published = frame.filter(pl.col("status") == "published")
    popular = (
        published.sort("views", descending=True, maintain_order=True)
        .head(top)
        .select("id", "title", "views")
        .iter_rows(named=True)
    )
    return InsightReport(
        total_visits=total_visits,
        total_articles=frame.height,
        published=published.height,
        drafts=frame.filter(pl.col("status") == "draft").height,
        total_comments=int(frame["comments"].sum() or 0),
        total_words=int(frame["words"].sum() or 0),
        popular=[PopularArticle(row["id"], row["title"], row["views"]) for row in popular],
        categories=categories(articles),
    )


def categories(articles: Iterable[Article]) -> list[str]:
    """Default categories followed by any other category used by a published article."""

    frame = articles_frame(articles)
    used = frame.filter(pl.col("status") == "published")["category"].unique(maintain_order=True).to_list()
    merged = dict.fromkeys([*DEFAULT_CATEGORIES, *used])
    return list(merged)


def count_words(text: str) -> int:
    return len(_WORD.findall(text))


def reading_time_minutes(text: str) -> int:
    return max(1, math.ceil(count_words(text) / WORDS_PER_MINUTE))


def search_articles(
    articles: Iterable[Article],
    query: str = "",
    *,
    category: str = ALL_CATEGORIES,
    is_admin: bool = False,
) -> list[Article]:
    """Filter articles the way the reader list does.

    Drafts are only visible to an admin and only under the drafts category.
    The query matches title, body or any tag, case-insensitively.
    """

    needle = query.strip().lower()
    matches: list[Article] = []
    for article in articles:
        is_draft = article.status == "draft"
        if is_draft and not is_admin:
            continue
        if category == DRAFTS_CATEGORY:
            if not is_draft:
                continue
        elif is_draft or (category != ALL_CATEGORIES and article.category != category):
            continue
        if needle and not (
            needle in article.title.lower()
            or needle in article.content.lower()
            or any(needle in tag.lower() for tag in article.tags)
        ):
            continue
        matches.append(article)
    return matches


__all__ = [
    "ALL_CATEGORIES",
    "DRAFTS_CATEGORY",
    "InsightReport",
    "PopularArticle",
    "WORDS_PER_MINUTE",
    "articles_frame",
    "build_insights",
    "categories",
    "count_words",
    "reading_time_minutes",
    "search_articles",
]
