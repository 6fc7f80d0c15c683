"""Pytest helpers for path configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from lekhoni.storage.capability import FORCE_LOCAL_ENV, reset_capability_cache  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_capability(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Every test starts without a cached backend decision or a force-local override."""

    monkeypatch.delenv(FORCE_LOCAL_ENV, raising=False)
    reset_capability_cache()
    yield
    reset_capability_cache()
