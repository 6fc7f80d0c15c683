from __future__ import annotations

from lekhoni.insights import (
    ALL_CATEGORIES,
    DRAFTS_CATEGORY,
    build_insights,
    categories,
    count_words,
    reading_time_minutes,
    search_articles,
)
from lekhoni.models import DEFAULT_CATEGORIES, Article, Comment


def _comment(index: int) -> Comment:
    return Comment(id=f"c{index}", author="পাঠক", content="ভালো", created_at=index)


ARTICLES = [
    Article(id="a", title="নদী", content="এক দুই তিন", category="গল্প", views=10, tags=["স্মৃতি"],
            comments=[_comment(1), _comment(2)]),
    Article(id="b", title="Rain", content="one two", category="ভ্রমণ", views=30),
    Article(id="c", title="Hidden", content="draft body here now", category="গল্প", status="draft", views=99),
    Article(id="d", title="Tie", content="", category="কবিতা", views=10),
]


def test_build_insights_totals() -> None:
    report = build_insights(ARTICLES, total_visits=42, top=3)

    assert report.total_visits == 42
    assert report.total_articles == 4
    assert report.published == 3
    assert report.drafts == 1
    assert report.total_comments == 2
    assert report.total_words == 3 + 2 + 4 + 0


def test_popular_excludes_drafts_and_keeps_order_on_ties() -> None:
    report = build_insights(ARTICLES, top=3)

    assert [item.id for item in report.popular] == ["b", "a", "d"]
    assert report.to_dict()["popular"][0] == {"id": "b", "title": "Rain", "views": 30}


def test_empty_article_set() -> None:
    report = build_insights([])

    assert report.total_articles == 0
    assert report.total_words == 0
    assert report.popular == []
    assert report.categories == list(DEFAULT_CATEGORIES)


def test_categories_append_custom_published_categories() -> None:
    assert categories(ARTICLES) == [*DEFAULT_CATEGORIES, "ভ্রমণ"]


def test_word_count_and_reading_time() -> None:
    assert count_words("  আমার   সোনার বাংলা\nআমি তোমায় ভালোবাসি ") == 6
    assert reading_time_minutes("") == 1
    assert reading_time_minutes(" ".join(["শব্দ"] * 201)) == 2


def test_search_hides_drafts_from_readers() -> None:
    assert [a.id for a in search_articles(ARTICLES)] == ["a", "b", "d"]
    assert search_articles(ARTICLES, category=DRAFTS_CATEGORY) == []
    assert [a.id for a in search_articles(ARTICLES, category=DRAFTS_CATEGORY, is_admin=True)] == ["c"]
    assert [a.id for a in search_articles(ARTICLES, category=ALL_CATEGORIES, is_admin=True)] == ["a", "b", "d"]


def test_search_matches_title_body_and_tags() -> None:
    assert [a.id for a in search_articles(ARTICLES, "rain")] == ["b"]
    assert [a.id for a in search_articles(ARTICLES, "দুই")] == ["a"]
    assert [a.id for a in search_articles(ARTICLES, "স্মৃতি")] == ["a"]
    assert [a.id for a in search_articles(ARTICLES, "", category="গল্প")] == ["a"]
