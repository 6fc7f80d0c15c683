"""Entity schemas shared by both storage backends.

Every document read from the local or the remote store passes through one of
the ``normalize_*`` functions below, so defaulting rules live in one place.
Field names on the wire are camelCase in both backends.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Iterator, Literal, Mapping, Sequence, TypeVar
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_CATEGORIES: tuple[str, ...] = ("গল্প", "কবিতা", "প্রবন্ধ", "অন্যান্য")
FALLBACK_CATEGORY = "অন্যান্য"

ArticleStatus = Literal["published", "draft"]
IdentityProviderTag = Literal["google", "facebook", "email"]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid4().hex


class Backend(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize to the wire shape shared by both stores."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Comment(_Document):
    id: str = Field(min_length=1)
    author: str
    content: str
    created_at: int = 0
    author_id: str | None = None
    author_avatar: str | None = None


class CommentDraft(_Document):
    """Reader-supplied part of a comment; id and timestamp are assigned on append."""

    author: str = Field(min_length=1)
    content: str = Field(min_length=1)
    author_id: str | None = None
    author_avatar: str | None = None

    @field_validator("author", "content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class Article(_Document):
    id: str = Field(min_length=1)
    title: str = ""
    content: str = ""
    summary: str | None = None
    created_at: int = 0
    tags: list[str] = Field(default_factory=list)
    cover_image: str | None = None
    comments: list[Comment] = Field(default_factory=list)
    category: str = FALLBACK_CATEGORY
    status: ArticleStatus = "published"
    views: int = Field(0, ge=0)
    likes: int | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or "published"

    @field_validator("views", "created_at", mode="before")
    @classmethod
    def _default_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def _default_category(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return FALLBACK_CATEGORY
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _ordered_tag_set(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        seen: dict[str, None] = {}
        for tag in value:
            cleaned = str(tag).strip()
            if cleaned:
                seen.setdefault(cleaned, None)
        return list(seen)

    @field_validator("comments", mode="before")
    @classmethod
    def _default_comments(cls, value: Any) -> Any:
        return [] if value is None else value


class ArticlePatch(_Document):
    """Partial article payload; only supplied fields are written."""

    id: str | None = None
    title: str | None = None
    content: str | None = None
    summary: str | None = None
    created_at: int | None = None
    tags: list[str] | None = None
    cover_image: str | None = None
    comments: list[Comment] | None = None
    category: str | None = None
    status: ArticleStatus | None = None
    views: int | None = Field(None, ge=0)
    likes: int | None = None


_SITE_DEFAULTS: dict[str, str] = {
    "site_name": "SaadWrites",
    "tagline": "শব্দ যেখানে কথা বলে",
    "footer_text": "© 2025 SaadWrites.",
    "contact_email": "abdullahsaadbd61@gmail.com",
    "contact_phone": "+880 1883-672961",
    "contact_address": "Kishoreganj, Bangladesh",
    "newsletter_title": "সাহিত্য ও চিন্তার সাথে থাকুন",
    "newsletter_desc": (
        "আমার নতুন লেখা, ভাবনা এবং আপডেটের খবর সবার আগে পেতে ইমেইল দিয়ে যুক্ত হোন। "
        "কোনো স্প্যাম নয়, শুধুই সাহিত্য।"
    ),
    "about_name": "আব্দুল্লাহ সাআদ",
    "about_bio": (
        "আমি আব্দুল্লাহ সাআদ। আমার ধমনীতে কিশোরগঞ্জের পলিমাটির ঘ্রাণ, "
        "আর স্মৃতির পাতায় মেঘনা-বিধৌত নোয়াখালীর নোনা বাতাস..."
    ),
    "about_location1": "কিশোরগঞ্জ",
    "about_location2": "নোয়াখালী",
    "about_trait": "ভবঘুরে",
}


class SiteConfig(_Document):
    """Singleton record of editable site copy; every field always has a value."""

    site_name: str = _SITE_DEFAULTS["site_name"]
    tagline: str = _SITE_DEFAULTS["tagline"]
    logo_url: str | None = None
    footer_text: str = _SITE_DEFAULTS["footer_text"]
    contact_email: str = _SITE_DEFAULTS["contact_email"]
    contact_phone: str = _SITE_DEFAULTS["contact_phone"]
    contact_address: str = _SITE_DEFAULTS["contact_address"]
    newsletter_title: str = _SITE_DEFAULTS["newsletter_title"]
    newsletter_desc: str = _SITE_DEFAULTS["newsletter_desc"]
    about_name: str = _SITE_DEFAULTS["about_name"]
    about_bio: str = _SITE_DEFAULTS["about_bio"]
    about_location1: str = _SITE_DEFAULTS["about_location1"]
    about_location2: str = _SITE_DEFAULTS["about_location2"]
    about_trait: str = _SITE_DEFAULTS["about_trait"]
    about_website: str | None = None


class SiteConfigPatch(_Document):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    site_name: str | None = None
    tagline: str | None = None
    logo_url: str | None = None
    footer_text: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    contact_address: str | None = None
    newsletter_title: str | None = None
    newsletter_desc: str | None = None
    about_name: str | None = None
    about_bio: str | None = None
    about_location1: str | None = None
    about_location2: str | None = None
    about_trait: str | None = None
    about_website: str | None = None


class Identity(_Document):
    id: str = Field(min_length=1)
    name: str
    email: str = ""
    avatar: str = ""
    provider: IdentityProviderTag = "google"


class Subscriber(_Document):
    id: str = Field(default_factory=new_id)
    email: str = Field(min_length=3)
    created_at: int = Field(default_factory=now_ms)


class ContactMessage(_Document):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    message: str = Field(min_length=1)
    created_at: int = Field(default_factory=now_ms)
    read: bool = False


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Snapshot(Generic[T]):
    """One full, ordered delivery from a subscription."""

    items: tuple[T, ...]
    source: Backend

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def ids(self) -> list[str]:
        return [getattr(item, "id") for item in self.items]

    def get(self, entity_id: str) -> T | None:
        for item in self.items:
            if getattr(item, "id", None) == entity_id:
                return item
        return None


# ----------------------------------------------------------------------
# Normalization


def normalize_comment(raw: Mapping[str, Any]) -> Comment:
    return Comment.model_validate(dict(raw))


def normalize_article(raw: Mapping[str, Any]) -> Article:
    return Article.model_validate(dict(raw))


def normalize_site_config(raw: Mapping[str, Any] | None) -> SiteConfig:
    if not raw:
        return SiteConfig()
    present = {key: value for key, value in raw.items() if value is not None}
    return SiteConfig.model_validate(present)


def normalize_identity(raw: Mapping[str, Any] | None) -> Identity | None:
    if not raw:
        return None
    return Identity.model_validate(dict(raw))


def normalize_subscriber(raw: Mapping[str, Any]) -> Subscriber:
    return Subscriber.model_validate(dict(raw))


def normalize_message(raw: Mapping[str, Any]) -> ContactMessage:
    return ContactMessage.model_validate(dict(raw))


def normalize_many(
    documents: Sequence[Mapping[str, Any]],
    normalizer: Any,
) -> tuple[Any, ...]:
    """Normalize a delivery, skipping documents that cannot be repaired."""

    items = []
    for raw in documents:
        try:
            items.append(normalizer(raw))
        except ValidationError as exc:
            logger.warning("Skipping malformed document {}: {}", raw.get("id", "<no id>"), exc.errors()[0]["msg"])
    return tuple(items)


def article_document(payload: Article | ArticlePatch | Mapping[str, Any]) -> dict[str, Any]:
    """Return the merge-write payload for ``payload`` with an id assigned.

    A payload without an id describes a new article: it gets a generated id
    and a creation timestamp. Only supplied fields are carried over.
    """

    if isinstance(payload, Article):
        document = payload.to_document()
    else:
        patch = payload if isinstance(payload, ArticlePatch) else ArticlePatch.model_validate(dict(payload))
        document = {
            key: value
            for key, value in patch.model_dump(by_alias=True, exclude_unset=True, mode="json").items()
            if value is not None
        }
    if not document.get("id"):
        document["id"] = new_id()
        document.setdefault("createdAt", now_ms())
    return document


__all__ = [
    "DEFAULT_CATEGORIES",
    "FALLBACK_CATEGORY",
    "Article",
    "ArticlePatch",
    "ArticleStatus",
    "Backend",
    "Comment",
    "CommentDraft",
    "ContactMessage",
    "Identity",
    "SiteConfig",
    "SiteConfigPatch",
    "Snapshot",
    "Subscriber",
    "article_document",
    "new_id",
    "normalize_article",
    "normalize_comment",
    "normalize_identity",
    "normalize_many",
    "normalize_message",
    "normalize_site_config",
    "normalize_subscriber",
    "now_ms",
]
