"""Session-level synchronization: legacy migration and sample seeding."""

from .migration import MigrationReport, MigrationRunner
from .seeding import SAMPLE_ARTICLES, SeedReconciler, load_catalog
from .session import SyncSession

__all__ = [
    "MigrationReport",
    "MigrationRunner",
    "SAMPLE_ARTICLES",
    "SeedReconciler",
    "SyncSession",
    "load_catalog",
]
