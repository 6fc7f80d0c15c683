"""Shared configuration primitives."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ConfigDict

ConfigT = TypeVar("ConfigT", bound="BaseConfig")


class BaseConfig(BaseModel):
    """Base class for every configuration section.

    Unknown keys are rejected so that typos in the TOML file surface as
    validation errors instead of silently falling back to defaults.
    """

    model_config = ConfigDict(extra="forbid", validate_default=True)


def load_config(model: type[ConfigT], path: Path) -> ConfigT:
    """Load ``path`` as TOML and validate it against ``model``."""

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    return model.model_validate(payload)


__all__ = ["BaseConfig", "load_config"]
