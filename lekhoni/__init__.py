"""Persistence and synchronization core for a personal publishing site.

Articles, site settings, subscribers and messages live either in a cloud
document store or in a local persisted store; :mod:`lekhoni.storage` hides
that choice and :mod:`lekhoni.runtime` wires everything together.
"""

__all__: list[str] = []
