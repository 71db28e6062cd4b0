"""
Restore module for the vault server.

Replaces live collections with the contents of an exported artifact or a
stored snapshot, with a dry-run mode that never mutates.
"""

from .restorer import CollectionRestore, RestoreAction, RestoreReport, Restorer
from .sources import SnapshotSource, StoredSnapshot, load_file, parse_document

__all__ = [
    "CollectionRestore",
    "RestoreAction",
    "RestoreReport",
    "Restorer",
    "SnapshotSource",
    "StoredSnapshot",
    "load_file",
    "parse_document",
]
