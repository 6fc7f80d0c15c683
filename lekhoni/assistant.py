"""Writing assistant backed by a LiteLLM-routed generative-text model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import litellm
from loguru import logger

from lekhoni.config.llm import LLMConfig


class AssistantUnavailableError(RuntimeError):
    """The assistant is not configured or the model call failed."""


SYSTEM_INSTRUCTION = (
    "You are a sophisticated writing assistant for a {language} writer. "
    "Your tone should be literary, thoughtful, and grammatically correct in {language}. "
    "Always respond in {language} unless explicitly asked otherwise. "
    "Help the user refine their writing, expand ideas, or fix grammar."
)

TASK_PROMPTS: dict[str, str] = {
    "grammar": "Please correct the grammar and improve the flow of the following text without changing the meaning:\n\n{text}",
    "expand": (
        "The user is writing a piece. Based on the following text, write a continuation "
        "or expand on the ideas (2-3 paragraphs):\n\n{text}"
    ),
    "summarize": "Provide a concise summary of the following text:\n\n{text}",
    "ideas": 'Based on this draft title or concept: "{prompt}", suggest 5 creative outlines or directions for a blog post or story.',
    "tone_formal": "Rewrite the following text in a formal, professional, and sophisticated tone:\n\n{text}",
    "tone_casual": "Rewrite the following text in a casual, conversational, and friendly tone:\n\n{text}",
    "tone_literary": (
        "Rewrite the following text in a highly literary, poetic, and artistic tone "
        "suitable for high-quality literature:\n\n{text}"
    ),
    "style_concise": (
        "Rewrite the following text to be more concise, removing unnecessary words "
        "while keeping the core message:\n\n{text}"
    ),
    "style_descriptive": (
        "Rewrite the following text to be more descriptive, adding vivid imagery, "
        "sensory details, and metaphors:\n\n{text}"
    ),
    "genre_mystery": (
        "Rewrite or enhance the following text to fit the Mystery/Thriller genre. "
        "Add suspense, intrigue, and atmospheric tension:\n\n{text}"
    ),
    "genre_romance": (
        "Rewrite or enhance the following text to fit the Romance genre. "
        "Focus on deep emotions, sensory details, and intimacy:\n\n{text}"
    ),
    "genre_horror": (
        "Rewrite or enhance the following text to fit the Horror genre. "
        "Build a sense of dread, use unsettling imagery, and fear:\n\n{text}"
    ),
}

EMPTY_REPLY = "দুঃখিত, কোনো উত্তর পাওয়া যায়নি।"


def build_prompt(task: str, text: str, prompt: str = "") -> str:
    """Render the user message for ``task``; unknown tasks use ``prompt`` as-is."""

    template = TASK_PROMPTS.get(task)
    if template is None:
        return f"{prompt}\n\nContext text:\n{text}"
    return template.format(text=text, prompt=prompt)


class _AssistantClient(Protocol):
    async def complete(self, system: str, user: str) -> str:
        ...


@dataclass(slots=True)
class _LiteLLMClient:
    config: LLMConfig
    api_key: str

    async def complete(self, system: str, user: str) -> str:
        call_kwargs: dict[str, Any] = {
            "model": self.config.name,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self.config.temperature,
            "api_key": self.api_key,
        }
        if self.config.base_url:
            call_kwargs["api_base"] = self.config.base_url
        try:
            response = await litellm.acompletion(**call_kwargs)
        except Exception as exc:  # noqa: BLE001
            raise AssistantUnavailableError(f"Writing assistant request failed: {exc}") from exc
        return _extract_content(response)


@dataclass(slots=True)
class _StubClient:
    """Deterministic offline stand-in used with a ``stub://`` base URL."""

    config: LLMConfig
    calls: list[tuple[str, str]] = field(default_factory=list)

    async def complete(self, system: str, user: str) -> str:
        self.calls.append((system, user))
        first_line = user.strip().splitlines()[0] if user.strip() else ""
        return f"[{self.config.name}] {first_line}"


def _extract_content(response: Any) -> str:
    choices = getattr(response, "choices", None)
    if choices is None and isinstance(response, dict):
        choices = response.get("choices")
    if not choices:
        return ""
    choice = choices[0]
    message = getattr(choice, "message", None)
    if message is None and isinstance(choice, dict):
        message = choice.get("message")
    if message is None:
        return ""
    content = getattr(message, "content", None)
    if content is None and isinstance(message, dict):
        content = message.get("content")
    return str(content).strip() if content else ""


def _build_client(config: LLMConfig) -> _AssistantClient:
    base_url = (config.base_url or "").strip().lower()
    if base_url.startswith("stub://"):
        logger.debug("Using stub writing assistant for model {}", config.name)
        return _StubClient(config)
    api_key = config.api_key_secret
    if not api_key:
        raise AssistantUnavailableError("Writing assistant API key is not configured")
    logger.debug("Using LiteLLM writing assistant for model {}", config.name)
    return _LiteLLMClient(config, api_key)


class WritingAssistant:
    """``(task, draft text) -> completion`` or :class:`AssistantUnavailableError`."""

    def __init__(self, config: LLMConfig | None) -> None:
        self.config = config
        self._client: _AssistantClient | None = None

    @property
    def available(self) -> bool:
        if self.config is None:
            return False
        if (self.config.base_url or "").strip().lower().startswith("stub://"):
            return True
        return bool(self.config.api_key_secret)

    def _require_client(self) -> _AssistantClient:
        if self.config is None:
            raise AssistantUnavailableError("Writing assistant is not configured")
        if self._client is None:
            self._client = _build_client(self.config)
        return self._client

    async def assist(self, task: str, text: str, *, prompt: str = "") -> str:
        client = self._require_client()
        assert self.config is not None
        system = SYSTEM_INSTRUCTION.format(language=self.config.language)
        logger.debug("Requesting '{}' assistance for {} characters", task, len(text))
        reply = await client.complete(system, build_prompt(task, text, prompt))
        return reply or EMPTY_REPLY


__all__ = [
    "AssistantUnavailableError",
    "SYSTEM_INSTRUCTION",
    "TASK_PROMPTS",
    "WritingAssistant",
    "build_prompt",
]
