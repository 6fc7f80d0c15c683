"""Helper utilities for configuration handling."""

from __future__ import annotations

import os

_ENV_PREFIX = "env:"
_PLACEHOLDER_VALUES = frozenset({"", "your-project-id", "changeme", "replace_me"})
_PLACEHOLDER_PREFIXES = ("YOUR_", "REPLACE_ME", "<")


def resolve_env_reference(value: str | None, *, required: bool = True) -> str | None:
    """Resolve values that reference environment variables.

    Accepts strings in the form ``"env:VAR_NAME"`` and returns the value from
    ``os.environ``. When ``required`` is ``True`` (default) and the variable is
    missing or empty, an :class:`EnvironmentError` is raised. Plain strings are
    returned unchanged, and ``None`` values are passed through.
    """

    if value is None:
        return None
    if not value.startswith(_ENV_PREFIX):
        return value

    var_name = value.split(":", 1)[1]
    resolved = os.getenv(var_name)
    if resolved:
        return resolved
    if required:
        raise EnvironmentError(f"Environment variable '{var_name}' is not set or empty")
    return None


def is_placeholder(value: str | None) -> bool:
    """Return ``True`` when ``value`` is missing or one of the template defaults.

    ``env:`` references count as placeholders when the variable is unset.
    """

    resolved = resolve_env_reference(value, required=False)
    if resolved is None:
        return True
    candidate = resolved.strip()
    if candidate.lower() in _PLACEHOLDER_VALUES:
        return True
    return candidate.upper().startswith(_PLACEHOLDER_PREFIXES)


def is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


__all__ = ["resolve_env_reference", "is_placeholder", "is_truthy"]
