from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

from lekhoni import assistant as assistant_module
from lekhoni.assistant import (
    EMPTY_REPLY,
    TASK_PROMPTS,
    AssistantUnavailableError,
    WritingAssistant,
    build_prompt,
)
from lekhoni.config import LLMConfig


def test_build_prompt_for_known_and_free_form_tasks() -> None:
    assert build_prompt("summarize", "লেখা") == TASK_PROMPTS["summarize"].format(text="লেখা")
    assert build_prompt("ideas", "", "বর্ষা").startswith('Based on this draft title or concept: "বর্ষা"')
    assert build_prompt("custom", "ctx", "Make it rhyme") == "Make it rhyme\n\nContext text:\nctx"


def test_stub_assistant_answers_offline() -> None:
    config = LLMConfig(name="stub-model", base_url="stub://local", api_key=None)
    helper = WritingAssistant(config)

    reply = asyncio.run(helper.assist("grammar", "আমি ভাত খায়"))

    assert helper.available
    assert reply == "[stub-model] Please correct the grammar and improve the flow of the following text without changing the meaning:"


def test_unconfigured_assistant_is_unavailable() -> None:
    helper = WritingAssistant(None)

    assert not helper.available
    with pytest.raises(AssistantUnavailableError):
        asyncio.run(helper.assist("grammar", "text"))


def test_missing_api_key_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LEKHONI_TEST_KEY", raising=False)
    helper = WritingAssistant(LLMConfig(api_key="env:LEKHONI_TEST_KEY"))

    assert not helper.available
    with pytest.raises(AssistantUnavailableError, match="API key"):
        asyncio.run(helper.assist("grammar", "text"))


def test_litellm_call_carries_system_instruction(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    async def _fake_acompletion(**kwargs: Any) -> Any:
        captured.update(kwargs)
        message = SimpleNamespace(content="  সংশোধিত লেখা  ")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    monkeypatch.setattr(assistant_module.litellm, "acompletion", _fake_acompletion)
    helper = WritingAssistant(
        LLMConfig(name="gemini/gemini-2.5-flash", api_key="secret", base_url="https://example.test", language="Bengali")
    )

    reply = asyncio.run(helper.assist("tone_formal", "draft"))

    assert reply == "সংশোধিত লেখা"
    assert captured["model"] == "gemini/gemini-2.5-flash"
    assert captured["api_key"] == "secret"
    assert captured["api_base"] == "https://example.test"
    system, user = captured["messages"]
    assert "Bengali writer" in system["content"]
    assert user["content"].endswith("draft")


def test_empty_model_reply_gets_fallback_text(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _fake_acompletion(**kwargs: Any) -> Any:
        return {"choices": [{"message": {"content": ""}}]}

    monkeypatch.setattr(assistant_module.litellm, "acompletion", _fake_acompletion)
    helper = WritingAssistant(LLMConfig(api_key="secret"))

    assert asyncio.run(helper.assist("expand", "x")) == EMPTY_REPLY


def test_model_failure_is_reported_as_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _failing(**kwargs: Any) -> Any:
        raise RuntimeError("quota exhausted")

    monkeypatch.setattr(assistant_module.litellm, "acompletion", _failing)
    helper = WritingAssistant(LLMConfig(api_key="secret"))

    with pytest.raises(AssistantUnavailableError, match="quota exhausted"):
        asyncio.run(helper.assist("summarize", "x"))
