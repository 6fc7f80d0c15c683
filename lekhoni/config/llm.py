"""Writing assistant configuration."""

from __future__ import annotations

from pydantic import Field

from lekhoni.config.base import BaseConfig
from lekhoni.config.utils import resolve_env_reference


class LLMConfig(BaseConfig):
    """Configuration for the generative-text endpoint behind the assistant."""

    name: str = Field("gemini/gemini-2.5-flash", description="Model identifier passed to LiteLLM")
    base_url: str | None = Field(None, description="Optional API base URL; 'stub://' selects the offline stub")
    api_key: str | None = Field("env:API_KEY", description="API key, can use 'env:VAR_NAME' format")
    temperature: float = Field(0.7, ge=0.0, le=2.0, description="Sampling temperature")
    language: str = Field("Bengali", description="Language the assistant replies in")

    @property
    def api_key_secret(self) -> str | None:
        """Return the resolved API key, or ``None`` when it is not configured."""

        return resolve_env_reference(self.api_key, required=False)


__all__ = ["LLMConfig"]
