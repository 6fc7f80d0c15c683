"""Detect whether the remote document store may be used by this process."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import cache

from loguru import logger

from lekhoni.config.storage import RemoteConfig
from lekhoni.config.utils import is_placeholder, is_truthy

FORCE_LOCAL_ENV = "LEKHONI_FORCE_LOCAL"


@dataclass(frozen=True, slots=True)
class BackendCapability:
    remote_available: bool
    reason: str


def detect_backend(config: RemoteConfig) -> BackendCapability:
    """Return the backend capability for ``config``.

    The first answer for a given set of credentials is cached for the lifetime
    of the process; connectivity changes mid-session are never re-checked.
    """

    return _detect(
        config.project_id,
        str(config.credentials_file) if config.credentials_file else None,
        config.force_local,
        os.getenv(FORCE_LOCAL_ENV),
    )


@cache
def _detect(
    project_id: str,
    credentials_file: str | None,
    force_local: bool,
    force_local_env: str | None,
) -> BackendCapability:
    if force_local:
        capability = BackendCapability(False, "remote.force_local is set")
    elif is_truthy(force_local_env):
        capability = BackendCapability(False, f"{FORCE_LOCAL_ENV} is set")
    elif is_placeholder(project_id):
        capability = BackendCapability(False, "remote project id is a placeholder")
    elif credentials_file is not None and not os.path.exists(credentials_file):
        capability = BackendCapability(False, f"credentials file {credentials_file} not found")
    else:
        capability = BackendCapability(True, "remote credentials configured")

    if capability.remote_available:
        logger.info("Remote document store enabled ({})", capability.reason)
    else:
        logger.info("Running in local-only mode: {}", capability.reason)
    return capability


def is_remote_available(config: RemoteConfig) -> bool:
    return detect_backend(config).remote_available


def reset_capability_cache() -> None:
    """Forget cached answers; only meant for tests that switch configurations."""
    _detect.cache_clear()


__all__ = [
    "BackendCapability",
    "FORCE_LOCAL_ENV",
    "detect_backend",
    "is_remote_available",
    "reset_capability_cache",
]
