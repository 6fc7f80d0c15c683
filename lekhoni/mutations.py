"""View increments and comment appends on top of the persistence facade.

The two mutations intentionally differ in ordering. A view increment is
reflected to the caller immediately and persisted in the background with a
best-effort write. A comment append is persisted first and only reflected
once the write has resolved.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from lekhoni.models import Article, Comment, CommentDraft, new_id, now_ms
from lekhoni.storage.errors import LocalWriteError, StorageError
from lekhoni.storage.facade import PersistenceFacade, WriteOutcome, WritePolicy


class ArticleNotFoundError(LookupError):
    """Raised when a mutation targets an article that is not known."""


@dataclass(frozen=True, slots=True)
class CommentResult:
    """What the caller should show after a comment append.

    On failure ``article`` is the unchanged article and ``error`` is set.
    """

    article: Article
    comment: Comment
    outcome: WriteOutcome | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MutationPipeline:
    def __init__(
        self,
        facade: PersistenceFacade,
        latest: Callable[[str], Article | None],
    ) -> None:
        self.facade = facade
        self._latest = latest
        self._views: dict[str, int] = {}
        self._comments: dict[str, list[Comment]] = {}
        self._pending: set[asyncio.Task[Any]] = set()

    def known_views(self, article: Article) -> int:
        return max(article.views, self._views.get(article.id, 0))

    # ------------------------------------------------------------------
    # Reflect-then-write
    # ------------------------------------------------------------------
    def increment_view(self, article: Article) -> Article:
        """Return ``article`` with one more view and persist it without waiting.

        Must be called from a running event loop. The in-memory count is never
        rolled back when the background write fails.
        """

        views = self.known_views(article) + 1
        self._views[article.id] = views
        task = asyncio.get_running_loop().create_task(self._persist_view(article, views))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return article.model_copy(update={"views": views})

    async def _persist_view(self, article: Article, views: int) -> None:
        article_id = article.id
        latest = self._latest(article_id) or article
        try:
            receipt = await self.facade.save_article(
                {"id": article_id, "views": views},
                policy=WritePolicy.BEST_EFFORT,
                local_document={**latest.to_document(), "views": views},
            )
            if receipt.outcome is WriteOutcome.LOST:
                logger.warning("View count {} for {} was not persisted", views, article_id)
        except StorageError as exc:
            logger.error("Failed to persist view count for {}: {}", article_id, exc)
        try:
            await self.facade.local.bump_visits()
        except LocalWriteError as exc:
            logger.warning("Could not update the local visit counter: {}", exc)

    async def flush(self) -> None:
        """Wait for every background view write issued so far."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Write-then-reflect
    # ------------------------------------------------------------------
    def _merged_comments(self, article: Article) -> list[Comment]:
        comments = list(article.comments)
        known = {comment.id for comment in comments}
        comments.extend(comment for comment in self._comments.get(article.id, []) if comment.id not in known)
        return comments

    async def append_comment(self, article_id: str, draft: CommentDraft) -> CommentResult:
        """Append a comment to the latest known version of ``article_id``.

        Only ``{id, comments}`` is written so a concurrent view increment is
        never overwritten. The caller-visible article changes only after the
        write resolves; a failed write leaves it as it was and reports the error.
        """

        article = self._latest(article_id)
        if article is None:
            raise ArticleNotFoundError(f"Unknown article: {article_id}")

        comment = Comment(
            id=new_id(),
            author=draft.author.strip(),
            content=draft.content.strip(),
            created_at=now_ms(),
            author_id=draft.author_id,
            author_avatar=draft.author_avatar,
        )
        comments = [*self._merged_comments(article), comment]
        comment_documents = [item.to_document() for item in comments]
        try:
            receipt = await self.facade.save_article(
                {"id": article_id, "comments": comment_documents},
                policy=WritePolicy.DURABLE,
                local_document={
                    **article.to_document(),
                    "comments": comment_documents,
                    "views": self.known_views(article),
                },
            )
        except LocalWriteError as exc:
            logger.error("Comment on {} could not be saved: {}", article_id, exc)
            return CommentResult(article=article, comment=comment, error=exc)

        self._comments[article_id] = comments
        updated = article.model_copy(update={"comments": comments, "views": self.known_views(article)})
        logger.debug("Appended comment {} to {} ({})", comment.id, article_id, receipt.outcome.value)
        return CommentResult(article=updated, comment=comment, outcome=receipt.outcome)


__all__ = ["ArticleNotFoundError", "CommentResult", "MutationPipeline"]
