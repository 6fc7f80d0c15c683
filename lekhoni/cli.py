"""Command line interface for lekhoni."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import typer
import uvicorn
from loguru import logger

from .assistant import TASK_PROMPTS, AssistantUnavailableError, WritingAssistant
from .config import AppConfig, load_config
from .config.inspector import check_config, explain_config
from .insights import build_insights
from .runtime import Runtime, build_runtime
from .storage.capability import detect_backend
from .storage.events import Channel
from .storage.local import LocalStore
from .transfer import MalformedImportError, export_articles, export_filename, import_articles, parse_import
from .web import create_app


@dataclass(slots=True)
class CLIState:
    """Holds shared state between Typer commands."""

    config_path: Path
    _config: AppConfig | None = None
    _sink_ids: list[int] = field(default_factory=list)

    def ensure_config(self) -> AppConfig:
        if self._config is None:
            logger.info("Loading configuration from {}", self.config_path)
            self._config = load_config(AppConfig, self.config_path)
            self._configure_logging(self._config)
        return self._config

    def _configure_logging(self, config: AppConfig) -> None:
        if config.log_file is None:
            return
        try:
            config.log_file.parent.mkdir(parents=True, exist_ok=True)
            self._sink_ids.append(
                logger.add(
                    config.log_file,
                    rotation="5 MB",
                    retention=5,
                    level=config.logging_level.upper(),
                )
            )
        except OSError as exc:  # pragma: no cover - filesystem issues are environment-specific
            logger.warning("Failed to initialise file log sink {}: {}", config.log_file, exc)

    def release(self) -> None:
        for sink_id in self._sink_ids:
            logger.remove(sink_id)
        self._sink_ids.clear()


app = typer.Typer(help="Lekhoni publishing toolkit")
config_app = typer.Typer(help="Validate and document configuration files")
app.add_typer(config_app, name="config")

_STATE: list[CLIState] = []


def _default_config_path() -> Path:
    repo_root = Path(__file__).resolve().parents[1]
    return repo_root / "config" / "example.toml"


def _normalize_format(value: str) -> str:
    return value.lower()


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):  # pragma: no cover - defensive guard
        raise RuntimeError("CLI context is not initialised")
    return state


def _exit(code: int) -> None:
    raise typer.Exit(code)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Path = typer.Option(
        _default_config_path(),
        help="Path to the TOML configuration file",
    ),
) -> None:
    """Initialise CLI state."""

    state = CLIState(config_path=config.resolve())
    ctx.obj = state
    _STATE.append(state)

    if ctx.invoked_subcommand is None:
        logger.warning("No command provided. Try 'status' or 'config check'.")
        _exit(0)


async def _with_runtime(config: AppConfig, action: Any) -> Any:
    runtime = build_runtime(config)
    async with runtime:
        await runtime.session.wait_ready()
        return await action(runtime)


@app.command(help="Show configuration and local store status")
def status(ctx: typer.Context) -> None:
    config = _get_state(ctx).ensure_config()
    capability = detect_backend(config.remote)
    local = LocalStore.from_config(config.storage)
    local.kv.open()
    try:
        _report_status(config, local, capability.remote_available, capability.reason)
    finally:
        local.kv.close()


@app.command(help="Run legacy migration and sample seeding once, then exit")
def sync(
    ctx: typer.Context,
    timeout: float = typer.Option(
        60.0,
        min=0.1,
        help="Seconds to wait for the first article delivery",
    ),
) -> None:
    config = _get_state(ctx).ensure_config()

    async def _run() -> dict[str, Any]:
        runtime = build_runtime(config)
        async with runtime:
            await asyncio.wait_for(runtime.session.wait_ready(), timeout)
            await runtime.session.drain()
            report = runtime.session.migration_report
            return {
                "backend": runtime.session.snapshot.source.value,
                "articles": len(runtime.session.articles),
                "migration": {
                    "ran": bool(report and report.ran),
                    "migrated": report.migrated if report else [],
                    "failed": report.failed if report else [],
                    "cleared": bool(report and report.cleared),
                    "skipped": report.skipped_reason if report else "disabled",
                },
            }

    try:
        result = asyncio.run(_run())
    except TimeoutError:
        logger.error("No article delivery within {} seconds; the remote subscription may be hung", timeout)
        _exit(1)
        return

    logger.info("Synced {} articles from the {} store", result["articles"], result["backend"])
    migration = result["migration"]
    if migration["ran"]:
        logger.info(
            "Migration: {} migrated, {} failed, legacy key cleared={}",
            len(migration["migrated"]),
            len(migration["failed"]),
            migration["cleared"],
        )
    else:
        logger.info("Migration skipped: {}", migration["skipped"])
    if migration["failed"]:
        _exit(1)


@app.command(help="Export every article to a JSON backup")
def export(
    ctx: typer.Context,
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Destination file; defaults to <prefix>_backup_<date>.json, '-' prints to stdout",
    ),
) -> None:
    config = _get_state(ctx).ensure_config()

    async def _export(runtime: Runtime) -> str:
        return export_articles(runtime.session.articles)

    payload = asyncio.run(_with_runtime(config, _export))
    if output is not None and str(output) == "-":
        print(payload)
        return

    target = output or Path(export_filename(prefix=config.storage.key_prefix))
    target.write_text(payload, encoding="utf-8")
    logger.info("Exported articles to {}", target)


@app.command("import", help="Import articles from a JSON backup")
def import_command(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="JSON file produced by 'lekhoni export'"),
) -> None:
    config = _get_state(ctx).ensure_config()
    if not source.exists():
        logger.error("Import file not found: {}", source)
        _exit(2)

    try:
        articles = parse_import(source.read_bytes())
    except MalformedImportError as exc:
        logger.error("Rejected import file {}: {}", source, exc)
        _exit(2)
        return

    async def _import(runtime: Runtime) -> list[str]:
        report = await import_articles(runtime.facade, articles)
        await runtime.session.drain()
        return report.imported

    imported = asyncio.run(_with_runtime(config, _import))
    logger.info("Imported {} articles from {}", len(imported), source)


@app.command(help="Show dashboard statistics")
def insights(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format",
        callback=_normalize_format,
    ),
) -> None:
    config = _get_state(ctx).ensure_config()

    async def _insights(runtime: Runtime) -> dict[str, Any]:
        report = build_insights(runtime.session.articles, total_visits=runtime.local.total_visits())
        return report.to_dict()

    result = asyncio.run(_with_runtime(config, _insights))
    if format == "json":
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return

    logger.info("Visits: {}", result["totalVisits"])
    logger.info(
        "Articles: {} ({} published, {} drafts)",
        result["totalArticles"],
        result["published"],
        result["drafts"],
    )
    logger.info("Comments: {}, words: {}", result["totalComments"], result["totalWords"])
    for item in result["popular"]:
        logger.info("  - {} ({} views)", item["title"], item["views"])


@app.command(help="Ask the writing assistant for help with a draft")
def assist(
    ctx: typer.Context,
    task: str = typer.Argument(..., help=f"One of: {', '.join(TASK_PROMPTS)}; anything else uses --prompt"),
    text: str = typer.Option("", "--text", help="Draft text"),
    file: Path | None = typer.Option(None, "--file", help="Read the draft text from a file"),
    prompt: str = typer.Option("", "--prompt", help="Free-form instruction or draft title"),
) -> None:
    config = _get_state(ctx).ensure_config()
    draft = file.read_text(encoding="utf-8") if file is not None else text
    assistant = WritingAssistant(config.assistant)
    try:
        reply = asyncio.run(assistant.assist(task, draft, prompt=prompt))
    except AssistantUnavailableError as exc:
        logger.error("Writing assistant unavailable: {}", exc)
        _exit(3)
        return
    print(reply)


@app.command(help="Run the HTTP API server")
def serve(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Host to bind the API server to"),
    port: int | None = typer.Option(None, help="Port to bind the API server to"),
    dry_run: bool = typer.Option(
        False,
        help="Build the application and report status without running the server",
    ),
) -> None:
    config = _get_state(ctx).ensure_config()
    app_instance = create_app(build_runtime(config), config)

    bind_host = host or config.web.host
    bind_port = port or config.web.port
    if dry_run:
        logger.info("[Dry Run] Server will not be started ({}:{}).", bind_host, bind_port)
        return
    uvicorn.run(app_instance, host=bind_host, port=bind_port)


@config_app.command(help="Validate the configuration file")
def check(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for validation results",
        callback=_normalize_format,
    ),
) -> None:
    state = _get_state(ctx)
    result, exit_code, _ = check_config(state.config_path)

    if format == "json":
        print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
        _exit(exit_code)

    if result["status"] == "ok":
        logger.info("Configuration OK: {}", result["config_path"])
        for warning in result["warnings"]:
            logger.warning(warning)
    else:
        error: dict[str, Any] = result["error"]
        logger.error(
            "Configuration error ({}) for {}: {}",
            error["type"],
            result["config_path"],
            error["message"],
        )
        for detail in error.get("details", []):
            location = detail["loc"] or "<root>"
            logger.error("  - {}: {} ({})", location, detail["message"], detail["type"])

    _exit(exit_code)


@config_app.command(help="Describe available configuration fields")
def explain(
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for configuration schema",
        callback=_normalize_format,
    ),
) -> None:
    fields = explain_config()

    if format == "json":
        print(json.dumps({"fields": fields}, indent=2, ensure_ascii=False, default=str))
        return

    logger.info("Configuration schema ({} fields):", len(fields))
    for item in fields:
        description = item["description"] or "(no description)"
        logger.info(
            "  - {name}: type={type}, default={default}, description={description}",
            name=item["name"],
            type=item["type"],
            default=json.dumps(item["default"], ensure_ascii=False, default=str),
            description=description,
        )


def _report_status(config: AppConfig, local: LocalStore, remote_available: bool, reason: str) -> None:
    """Print configuration and local store status."""
    logger.info("=== General Configuration ===")
    logger.info("Logging level: {}", config.logging_level)
    logger.info("Backend: {} ({})", "remote" if remote_available else "local", reason)

    logger.info("\n=== Local Store ===")
    logger.info("Medium: {}", config.storage.backend)
    if config.storage.backend == "file":
        logger.info("Data dir: {}", config.storage.data_dir)
    logger.info("Key prefix: {}", config.storage.key_prefix)
    logger.info("Articles: {}", len(local.read_collection(Channel.ARTICLES)))
    logger.info("Subscribers: {}", len(local.read_collection(Channel.SUBSCRIBERS)))
    logger.info("Messages: {}", len(local.read_collection(Channel.MESSAGES)))
    logger.info("Tombstones: {}", len(local.tombstones()))
    logger.info("Total visits: {}", local.total_visits())
    draft = local.load_draft()
    logger.info("Unsaved draft: {}", "no" if draft.is_empty else f"yes ({draft.title or 'untitled'})")

    logger.info("\n=== Legacy Migration ===")
    logger.info("Enabled: {}", config.migration.enabled)
    legacy = local.read_legacy(config.migration.legacy_key)
    logger.info("Legacy data under {}: {}", config.migration.legacy_key, "present" if legacy else "none")

    logger.info("\n=== Seeding ===")
    logger.info("Enabled: {}", config.seed.enabled)
    logger.info("Catalog: {}", config.seed.catalog_path or "built-in samples")

    logger.info("\n=== Writing Assistant ===")
    if config.assistant:
        logger.info("Model: {} ({})", config.assistant.name, config.assistant.language)
    else:
        logger.info("Not configured")


def main(argv: list[str] | None = None) -> int:
    """Entry point compatible with setuptools console scripts."""

    try:
        result = app(args=argv, standalone_mode=False)
    except typer.Exit as exc:  # pragma: no cover - Typer translates exit codes
        return exc.exit_code
    finally:
        while _STATE:
            _STATE.pop().release()
    if isinstance(result, int):
        return result
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
