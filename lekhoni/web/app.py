"""FastAPI application factory and routing definitions."""

from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from loguru import logger
from pydantic import BaseModel, Field

from lekhoni.assistant import AssistantUnavailableError
from lekhoni.config.app import AppConfig
from lekhoni.config.web import WebAuthConfig
from lekhoni.insights import ALL_CATEGORIES, build_insights, search_articles
from lekhoni.models import ArticlePatch, CommentDraft, SiteConfigPatch
from lekhoni.mutations import ArticleNotFoundError
from lekhoni.runtime import Runtime
from lekhoni.storage.errors import LocalWriteError
from lekhoni.storage.facade import WriteReceipt
from lekhoni.transfer import (
    MalformedImportError,
    export_articles,
    export_filename,
    import_articles,
    parse_import,
)


class NewsletterRequest(BaseModel):
    email: str = Field(min_length=3)


class ContactRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    message: str = Field(min_length=1)


class DraftRequest(BaseModel):
    title: str = ""
    content: str = ""


class AssistRequest(BaseModel):
    task: str = Field(min_length=1)
    text: str = ""
    prompt: str = ""


def _receipt(receipt: WriteReceipt) -> dict[str, str]:
    return {"id": receipt.entity_id, "outcome": receipt.outcome.value}


def create_app(runtime: Runtime, config: AppConfig | None = None) -> FastAPI:
    """Create the JSON API around an unopened runtime; the lifespan opens and closes it."""

    config = config or runtime.config
    web_config = config.web
    auth_config = web_config.auth if web_config.auth else None
    require_admin = _build_auth_dependency(auth_config)
    is_admin = _build_admin_probe(auth_config)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("Application startup...")
        await runtime.open()
        try:
            yield
        finally:
            logger.info("Application shutdown...")
            await runtime.close()

    app = FastAPI(
        title=web_config.title,
        description="Articles, comments and site settings backed by a remote or local store.",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(LocalWriteError)
    async def _local_write_failed(_: Request, exc: LocalWriteError) -> JSONResponse:
        logger.error("Write could not be persisted: {}", exc)
        return JSONResponse(status_code=503, content={"detail": "The change could not be saved."})

    def _find(article_id: str, admin: bool) -> Any:
        article = runtime.session.get(article_id)
        if article is None or (article.status == "draft" and not admin):
            raise HTTPException(status_code=404, detail=f"Article '{article_id}' not found.")
        return article

    @app.get("/health", summary="Health Check", tags=["Monitoring"])
    async def health_check() -> dict[str, Any]:
        return {
            "status": "ok",
            "backend": "remote" if runtime.facade.remote_available else "local",
            "articles": len(runtime.session.articles),
        }

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------
    @app.get("/articles", tags=["Articles"])
    async def list_articles(
        q: str = "",
        category: str = ALL_CATEGORIES,
        admin: bool = Depends(is_admin),
    ) -> list[dict[str, Any]]:
        """Published articles, newest first; admins also see drafts."""
        matches = search_articles(runtime.session.articles, q, category=category, is_admin=admin)
        return [article.to_document() for article in matches]

    @app.get("/articles/{article_id}", tags=["Articles"])
    async def get_article(article_id: str, admin: bool = Depends(is_admin)) -> dict[str, Any]:
        return _find(article_id, admin).to_document()

    @app.post("/articles", tags=["Articles"], status_code=status.HTTP_201_CREATED)
    async def save_article(payload: ArticlePatch, _: None = Depends(require_admin)) -> dict[str, str]:
        receipt = await runtime.facade.save_article(payload)
        await runtime.local.clear_draft()
        return _receipt(receipt)

    @app.delete("/articles/{article_id}", tags=["Articles"])
    async def delete_article(article_id: str, _: None = Depends(require_admin)) -> dict[str, str]:
        return _receipt(await runtime.facade.delete_article(article_id))

    @app.post("/articles/{article_id}/views", tags=["Articles"])
    async def record_view(article_id: str, admin: bool = Depends(is_admin)) -> dict[str, Any]:
        article = _find(article_id, admin)
        return runtime.mutations.increment_view(article).to_document()

    @app.post("/articles/{article_id}/comments", tags=["Articles"], status_code=status.HTTP_201_CREATED)
    async def add_comment(article_id: str, draft: CommentDraft) -> dict[str, Any]:
        try:
            result = await runtime.mutations.append_comment(article_id, draft)
        except ArticleNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        if not result.ok:
            raise HTTPException(status_code=503, detail="Comment could not be saved.")
        return result.article.to_document()

    # ------------------------------------------------------------------
    # Site configuration
    # ------------------------------------------------------------------
    @app.get("/config", tags=["Settings"])
    async def get_config() -> dict[str, Any]:
        return runtime.site.to_document()

    @app.patch("/config", tags=["Settings"])
    async def update_config(patch: SiteConfigPatch, _: None = Depends(require_admin)) -> dict[str, str]:
        return _receipt(await runtime.facade.save_config(patch))

    # ------------------------------------------------------------------
    # Reader submissions
    # ------------------------------------------------------------------
    @app.post("/newsletter", tags=["Readers"], status_code=status.HTTP_201_CREATED)
    async def subscribe(request: NewsletterRequest) -> dict[str, str]:
        return _receipt(await runtime.facade.add_subscriber(request.email))

    @app.post("/contact", tags=["Readers"], status_code=status.HTTP_201_CREATED)
    async def contact(request: ContactRequest) -> dict[str, str]:
        receipt = await runtime.facade.send_message(request.name, request.email, request.message)
        return _receipt(receipt)

    # ------------------------------------------------------------------
    # Admin tools
    # ------------------------------------------------------------------
    @app.get("/subscribers", tags=["Admin"])
    async def list_subscribers(_: None = Depends(require_admin)) -> list[dict[str, Any]]:
        return [subscriber.to_document() for subscriber in runtime.subscribers]

    @app.get("/messages", tags=["Admin"])
    async def list_messages(_: None = Depends(require_admin)) -> list[dict[str, Any]]:
        return [message.to_document() for message in runtime.messages]

    @app.get("/draft", tags=["Admin"])
    async def get_draft(_: None = Depends(require_admin)) -> dict[str, str]:
        draft = runtime.local.load_draft()
        return {"title": draft.title, "content": draft.content}

    @app.put("/draft", tags=["Admin"])
    async def save_draft(request: DraftRequest, _: None = Depends(require_admin)) -> dict[str, str]:
        """Autosave the editor; drafts never leave the local store."""
        await runtime.local.save_draft(request.title, request.content)
        return {"title": request.title, "content": request.content}

    @app.get("/export", tags=["Admin"])
    async def export(_: None = Depends(require_admin)) -> Response:
        filename = export_filename(prefix=runtime.local.key_prefix)
        return Response(
            content=export_articles(runtime.session.articles),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/import", tags=["Admin"])
    async def import_(request: Request, _: None = Depends(require_admin)) -> dict[str, Any]:
        try:
            articles = parse_import(await request.body())
        except MalformedImportError as exc:
            logger.warning("Rejected import payload: {}", exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        report = await import_articles(runtime.facade, articles)
        return {"imported": report.imported}

    @app.get("/insights", tags=["Admin"])
    async def insights(_: None = Depends(require_admin)) -> dict[str, Any]:
        report = build_insights(runtime.session.articles, total_visits=runtime.local.total_visits())
        return report.to_dict()

    @app.post("/assist", tags=["Admin"])
    async def assist(request: AssistRequest, _: None = Depends(require_admin)) -> dict[str, str]:
        try:
            text = await runtime.assistant.assist(request.task, request.text, prompt=request.prompt)
        except AssistantUnavailableError as exc:
            logger.warning("Writing assistant unavailable: {}", exc)
            raise HTTPException(status_code=503, detail="Writing assistant is unavailable.") from exc
        return {"text": text}

    return app


def _build_auth_dependency(auth_config: WebAuthConfig | None) -> Callable[..., Any]:
    """Return a dependency that validates the configured admin token."""

    if not auth_config or not auth_config.enabled:
        async def _no_auth() -> None:  # pragma: no cover - trivial branch
            return None

        return _no_auth

    expected_token = auth_config.token_secret or ""
    header_alias = auth_config.header_name

    async def _verify_token(
        provided_token: str | None = Header(default=None, alias=header_alias),
    ) -> None:
        if provided_token is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing authentication token.",
            )

        if not secrets.compare_digest(provided_token, expected_token):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token.",
            )

    return _verify_token


def _build_admin_probe(auth_config: WebAuthConfig | None) -> Callable[..., Any]:
    """Like the auth dependency, but reports admin status instead of rejecting."""

    if not auth_config or not auth_config.enabled:
        async def _always_admin() -> bool:
            return True

        return _always_admin

    expected_token = auth_config.token_secret or ""
    header_alias = auth_config.header_name

    async def _probe(
        provided_token: str | None = Header(default=None, alias=header_alias),
    ) -> bool:
        return provided_token is not None and secrets.compare_digest(provided_token, expected_token)

    return _probe


__all__ = ["create_app"]
