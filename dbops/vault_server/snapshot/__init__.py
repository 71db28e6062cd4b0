"""
Snapshot module for the vault server.

This module handles full-collection snapshots for:
- Manual exports (one downloadable JSON artifact)
- Automated backups (metadata row plus per-collection chunks)
- Rebuilding restorable documents from stored snapshots

Invariants:
    - One failing collection never fails the whole snapshot
    - Stored snapshots always carry metadata before any chunk
"""

from .artifact import ExportedArtifact, SnapshotDocument
from .backup_store import BackupStore
from .snapshotter import CaptureResult, CollectionCapture, Snapshotter

__all__ = [
    "BackupStore",
    "CaptureResult",
    "CollectionCapture",
    "ExportedArtifact",
    "SnapshotDocument",
    "Snapshotter",
]
