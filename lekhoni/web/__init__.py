"""HTTP API for lekhoni."""

from .app import create_app

__all__ = ["create_app"]
