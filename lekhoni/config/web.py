"""HTTP API configuration models."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from lekhoni.config.base import BaseConfig
from lekhoni.config.utils import resolve_env_reference


class WebAuthConfig(BaseConfig):
    """Settings for the admin guard on mutating endpoints."""

    enabled: bool = Field(
        False, description="Whether admin endpoints require the header token.",
    )
    header_name: str = Field(
        "X-Admin-Token",
        description="Header to read the admin token from.",
        min_length=1,
    )
    token: str | None = Field(
        default=None, description="Shared secret or 'env:VAR_NAME' reference.",
        min_length=1,
    )

    @field_validator("token")
    @classmethod
    def _strip_token(cls, token: str | None) -> str | None:
        if token is None:
            return None
        stripped = token.strip()
        return stripped if stripped else None

    @model_validator(mode="after")
    def _ensure_token_when_enabled(self) -> "WebAuthConfig":
        if self.enabled and not self.token:
            msg = "Admin token must be provided when web auth is enabled."
            raise ValueError(msg)
        return self

    @property
    def token_secret(self) -> str | None:
        return resolve_env_reference(self.token)


class WebConfig(BaseConfig):
    """Top-level settings for the FastAPI application."""

    title: str = Field("Lekhoni API", min_length=1)
    host: str = Field("127.0.0.1", description="Bind address used by 'lekhoni serve'")
    port: int = Field(8000, ge=1, le=65535)
    auth: WebAuthConfig | None = Field(
        default=None,
        description="Admin authentication settings.",
    )


__all__ = ["WebAuthConfig", "WebConfig"]
